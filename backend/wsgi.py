"""WSGI entry point.

    flask --app backend/wsgi.py run
    python backend/wsgi.py          # development server on $PORT
"""
from reimburse import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=app.config['PORT'])
