"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

Management commands:

    flask --app run.py db init      (first time only)
    flask --app run.py db migrate -m "initial"
    flask --app run.py db upgrade
    flask --app run.py create-user admin --role ADMIN
    flask --app run.py export-projects completed --output completed.csv

"""

from ledger import create_app

# WSGI application object for Flask to run. When you run `flask run`, Flask looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only) - use `flask run` or a WSGI server instead.
    app.run(debug=True)
