import sys
from pathlib import Path

import requests

ROOT = Path(__file__).resolve().parents[1]
TOOLS = ROOT / "DesktopPythonInteractive"
if str(TOOLS) not in sys.path:
    sys.path.insert(0, str(TOOLS))

import quick_restock  # noqa: E402


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)


class FakeSession:
    def __init__(self, products, purchase_status=201, purchase_body=None):
        self.products = products
        self.purchase_status = purchase_status
        self.purchase_body = purchase_body
        self.posts = []
        self.headers_seen = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.headers_seen.append(headers)
        offset = params["offset"]
        return FakeResponse(200, self.products[offset:offset + params["limit"]])

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append((url, json))
        body = self.purchase_body or {"id": "p-1", "units_added": 24, "total_cost": "120.00"}
        return FakeResponse(self.purchase_status, body)


def test_records_purchase_for_matching_product(capsys):
    session = FakeSession([{"id": "a", "name": "Bread"}, {"id": "c", "name": "Cola 330ml"}])

    code = quick_restock.main(
        ["cola 330ML", "-b", "2", "--base-url", "http://ledger/api/v1", "--token", "t0k", "--page-size", "1"],
        session=session,
    )

    assert code == 0
    assert session.posts == [("http://ledger/api/v1/purchases", {"product_id": "c", "batches_purchased": 2})]
    assert all(h["X-API-Key"] == "t0k" for h in session.headers_seen)
    assert '"units_added": 24' in capsys.readouterr().out


def test_unknown_product_is_an_application_error(capsys):
    session = FakeSession([{"id": "a", "name": "Bread"}])

    assert quick_restock.main(["Cola"], session=session) == 1
    assert session.posts == []
    assert "No product named 'Cola'" in capsys.readouterr().err


def test_rejected_purchase_surfaces_server_message(capsys):
    session = FakeSession(
        [{"id": "c", "name": "Cola"}],
        purchase_status=422,
        purchase_body={"code": "validation_error", "message": "batches_purchased must be greater than zero"},
    )

    assert quick_restock.main(["Cola", "--cost-per-batch", "55.00", "-n", "delivery"], session=session) == 1
    assert session.posts[0][1] == {
        "product_id": "c",
        "batches_purchased": 1,
        "cost_per_batch": "55.00",
        "notes": "delivery",
    }
    assert "must be greater than zero" in capsys.readouterr().err


def test_server_errors_are_network_errors():
    session = FakeSession([{"id": "c", "name": "Cola"}], purchase_status=503, purchase_body={"code": "persistence_error"})
    assert quick_restock.main(["Cola"], session=session) == 2


def test_token_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("LEDGER_API_TOKEN", "from-env")
    assert quick_restock.resolve_token(None) == "from-env"
    assert quick_restock.resolve_token("cli") == "cli"
    monkeypatch.delenv("LEDGER_API_TOKEN")
    assert quick_restock.resolve_token(None) is None
