import os

APP_ENV = os.getenv('APP_ENV', 'production')

# Submission store
RETENTION_HOURS = int(os.getenv('RETENTION_HOURS', '24'))
SWEEP_INTERVAL_SECONDS = int(os.getenv('SWEEP_INTERVAL_SECONDS', '3600'))

# Redirect back to the storefront: 'status' (302) or 'html' (meta refresh page)
REDIRECT_MODE = os.getenv('REDIRECT_MODE', 'status')
REDIRECT_TOKEN_PARAM = os.getenv('REDIRECT_TOKEN_PARAM', 'artwork_token')

# Jotform payload conventions
FILE_HOST_DOMAIN = os.getenv('FILE_HOST_DOMAIN', 'jotform.com')
FILE_UPLOAD_TYPE = os.getenv('FILE_UPLOAD_TYPE', 'control_fileupload')
UPLOAD_ACCOUNT = os.getenv('UPLOAD_ACCOUNT', 'WECANDOIT_admin')
UPLOAD_URL_TEMPLATE = os.getenv(
    'UPLOAD_URL_TEMPLATE',
    'https://www.jotform.com/uploads/{account}/{form_id}/{submission_id}/{filename}'
)
CALLER_DOMAIN = os.getenv('CALLER_DOMAIN', 'wecandoitshop.com')

# Limits for the embedded-JSON scan of bodies that match no known shape
SCRAPE_MAX_BYTES = int(os.getenv('SCRAPE_MAX_BYTES', '1000000'))
SCRAPE_MAX_CANDIDATES = int(os.getenv('SCRAPE_MAX_CANDIDATES', '50'))

IMAGE_FETCH_TIMEOUT = int(os.getenv('IMAGE_FETCH_TIMEOUT', '10'))


def is_development():
    return APP_ENV == 'development'
