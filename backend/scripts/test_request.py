"""Run a quick smoke test against the app.

Uses FastAPI's TestClient to call the public health check and to confirm
that a protected resource rejects an anonymous request.
"""

import sys
import os

# Ensure backend folder is on sys.path so `examhub` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from examhub.main import app


def run_testclient():
    client = TestClient(app)
    resp = client.get('/health')
    print('HEALTH:', resp.status_code, resp.json())
    resp = client.get('/roles')
    print('ANONYMOUS /roles:', resp.status_code, resp.json())


if __name__ == '__main__':
    run_testclient()
