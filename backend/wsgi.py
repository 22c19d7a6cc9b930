# Overview: WSGI entrypoint; `flask --app wsgi` and production servers load `app` from here.

from icestock import create_app

app = create_app()
