import html
import json
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import config
from responses import CORS_HEADERS

REDIRECT_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta http-equiv="refresh" content="0; url={attribute_url}">
  <title>Upload Complete</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, sans-serif;
      display: flex;
      align-items: center;
      justify-content: center;
      min-height: 100vh;
      margin: 0;
    }}
    .box {{ padding: 40px; text-align: center; }}
  </style>
</head>
<body>
  <div class="box">
    <h2>Upload Successful!</h2>
    <p>Redirecting back to product...</p>
    <p><a href="{attribute_url}">Continue</a></p>
  </div>
  <script>
    setTimeout(function () {{ window.location.href = {script_url}; }}, 100);
  </script>
</body>
</html>
"""


def build_redirect_url(return_url, token, param=None):
    """Add the token to returnUrl, replacing any previous value of the parameter"""
    param = param or config.REDIRECT_TOKEN_PARAM
    parts = urlsplit(return_url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True)
             if key != param]
    query.append((param, token))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def render_redirect_page(url):
    script_url = json.dumps(url).replace('</', '<\\/')
    return REDIRECT_PAGE.format(attribute_url=html.escape(url, quote=True), script_url=script_url)


def redirect_response(url, mode=None):
    """302 with a Location header, or a 200 page that redirects from the browser"""
    mode = mode or config.REDIRECT_MODE
    if mode == 'html':
        return {
            'statusCode': 200,
            'headers': dict(CORS_HEADERS, **{
                'Content-Type': 'text/html; charset=utf-8',
                'Cache-Control': 'no-store'
            }),
            'body': render_redirect_page(url)
        }
    return {
        'statusCode': 302,
        'headers': dict(CORS_HEADERS, **{
            'Location': url,
            'Cache-Control': 'no-store'
        }),
        'body': ''
    }
