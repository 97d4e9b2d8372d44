import logging
import traceback

# cPanel/Passenger looks for 'application' object
try:
    from app import create_app
    application = create_app()
except Exception:
    # If the app fails to start, keep the traceback somewhere readable via File Manager
    logging.basicConfig(filename='passenger_crash.log', level=logging.ERROR)
    logging.getLogger(__name__).error("Application failed to start:\n%s", traceback.format_exc())

    # Still raise it so Passenger knows it failed
    raise

if __name__ == '__main__':
    application.run()
