import base64

import requests

import config
from errors import BadRequest, UpstreamFetchFailure, WebhookError
from payload_decoder import is_file_host_url
from responses import (
    error_response,
    get_method,
    get_query_param,
    internal_error_response,
    json_response,
    method_not_allowed,
    preflight_response,
)

USER_AGENT = 'Mozilla/5.0 (compatible; ImageProxy/1.0)'


def validate_image_url(image_url):
    if not image_url:
        raise BadRequest("Missing url parameter")
    if not is_file_host_url(image_url):
        raise BadRequest("Only {} URLs are allowed".format(config.FILE_HOST_DOMAIN))


def fetch_image_data_url(image_url):
    """Download an uploaded image and return it as a base64 data URL"""
    try:
        response = requests.get(image_url, headers={'User-Agent': USER_AGENT},
                                timeout=config.IMAGE_FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as error:
        print("Error fetching image {}: {}".format(image_url, error))
        raise UpstreamFetchFailure("Failed to fetch image")

    content = response.content
    content_type = response.headers.get('Content-Type') or 'image/png'
    data_url = "data:{};base64,{}".format(content_type, base64.b64encode(content).decode('ascii'))

    print("Converted {} bytes to {} chars".format(len(content), len(data_url)))
    return {
        'success': True,
        'dataUrl': data_url,
        'originalSize': len(content),
        'base64Size': len(data_url),
        'contentType': content_type
    }


# Vercel handler function
def handler(request):
    """Image proxy so the storefront can embed an uploaded file without CORS trouble"""
    method = get_method(request)
    if method == 'OPTIONS':
        return preflight_response()

    if method not in ('GET', 'POST'):
        return method_not_allowed()

    image_url = get_query_param(request, 'url')
    try:
        validate_image_url(image_url)
        print("Fetching image: {}".format(image_url))
        return json_response(200, fetch_image_data_url(image_url))
    except BadRequest as error:
        data = {"error": error.message}
        if not image_url:
            data['usage'] = '/api/convert_image?url=IMAGE_URL'
        return json_response(error.status_code, data)
    except WebhookError as error:
        return error_response(error)
    except Exception as error:
        print("Image proxy error: {}".format(error))
        return internal_error_response(error)
