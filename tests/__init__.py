# Storefront live API and load test suite
#
# Run with: pytest tests/api  (starts a Flask server on an ephemeral database)
# Load:     locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001
