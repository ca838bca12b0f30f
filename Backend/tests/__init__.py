import os

# Keep the test run off any real database configured in the environment.
os.environ["DATABASE_URL"] = "sqlite://"
