import os

# Production config unless told otherwise
os.environ.setdefault("APP_ENV", "production")

from impactmining import create_app  # noqa: E402

app = create_app()
