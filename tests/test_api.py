import math

import pytest
from fastapi.testclient import TestClient

from main import app, normalize_expression


@pytest.fixture
def client():
    return TestClient(app)


def test_ping(client):
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_uptime(client):
    body = client.get("/uptime").json()
    assert body["status"] == "alive"
    assert body["uptime_seconds"] >= 0


def test_normalize_expression():
    assert normalize_expression("√(x) + π") == "sqrt(x) + pi"
    assert normalize_expression("∞") == "inf"
    assert normalize_expression("") == ""


def test_differentiate(client):
    response = client.post("/differentiate", json={"expression": "x^2"})
    assert response.status_code == 200
    body = response.json()
    assert body["result"] == "2*x"
    assert body["steps"][-1]["rule"] == "final_derivative"


def test_differentiate_normalizes_symbols(client):
    response = client.post("/differentiate", json={"expression": "√(x)"})
    assert response.json()["result"] == "1/(2*sqrt(x))"


def test_differentiate_higher_order(client):
    response = client.post("/differentiate", json={"expression": "x^3", "order": 3})
    assert response.json()["result"] == "6"


@pytest.mark.parametrize("order", [0, 11])
def test_differentiate_order_out_of_range(client, order):
    response = client.post("/differentiate", json={"expression": "x^2", "order": order})
    assert response.status_code == 400
    assert response.json()["detail"] == "Order must be a positive integer between 1 and 10"


def test_parse_error_is_a_bad_request(client):
    response = client.post("/differentiate", json={"expression": "x +"})
    assert response.status_code == 400


def test_integrate(client):
    response = client.post("/integrate", json={"expression": "cos(x)"})
    assert response.status_code == 200
    assert response.json()["result"] == "sin(x) + C"


def test_integrate_failure(client):
    response = client.post("/integrate", json={"expression": "sqrt(sin(x))"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot symbolically integrate: sqrt(sin(x))"


def test_limit(client):
    response = client.post("/limit", json={"expression": "1/x", "point": "∞"})
    assert response.status_code == 200
    assert response.json()["result"] == "0"


def test_limit_does_not_exist(client):
    response = client.post("/limit", json={"expression": "1/x", "point": "0"})
    assert response.status_code == 400


def test_limit_bad_direction(client):
    response = client.post("/limit", json={"expression": "x", "direction": "up"})
    assert response.status_code == 400


def test_series(client):
    response = client.post("/series", json={"expression": "exp(x)", "order": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["result"] == "1 + x + x^2/2"
    assert body["known_series"]["domain"] == "x \\in \\mathbb{R}"


def test_series_order_out_of_range(client):
    response = client.post("/series", json={"expression": "exp(x)", "order": 8})
    assert response.status_code == 400
    assert response.json()["detail"] == "Order must be between 0 and 7 for series expansion"


def test_evaluate(client):
    response = client.post("/evaluate", json={"expression": "2*π"})
    assert response.json()["value"] == pytest.approx(2 * math.pi)
    response = client.post("/evaluate", json={"expression": "x*y", "scope": {"x": 2, "y": 3}})
    assert response.json()["value"] == pytest.approx(6)


def test_evaluate_failure(client):
    assert client.post("/evaluate", json={"expression": "1/0"}).status_code == 400
    assert client.post("/evaluate", json={"expression": "inf"}).status_code == 400


def test_generate(client):
    response = client.post("/generate", json={"num_terms": 2, "max_depth": 2, "variables": ["x"]})
    assert response.status_code == 200
    body = response.json()
    assert body["expression_string"]
    assert body["expression_latex"]
