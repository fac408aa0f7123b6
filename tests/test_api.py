import pytest
from fastapi.testclient import TestClient

from docent.src.api.app import create_app
from docent.src.core.rag_engine import AnswerController


@pytest.fixture
def services(fake_index_factory, fake_generator_factory, make_match):
    index = fake_index_factory([make_match("title: Water Lilies artist: Claude Monet", source="water_lilies.json")])
    controller = AnswerController(index, fake_generator_factory(["Claude Monet painted Water Lilies."]), max_attempts=3)
    return index, controller


@pytest.fixture
def client(services):
    _, controller = services
    app = create_app(controller=controller, index_on_startup=False)
    with TestClient(app) as test_client:
        yield test_client


def test_question_returns_answer_and_sources(client):
    response = client.post("/api/question", json={"question": "Who painted Water Lilies?"})
    assert response.status_code == 200
    assert response.json() == {
        "answer": "Claude Monet painted Water Lilies.",
        "sources": [{"content": "title: Water Lilies artist: Claude Monet", "source": "water_lilies.json"}],
    }

@pytest.mark.parametrize("payload", [{"question": ""}, {"question": "   "}, {}])
def test_blank_question_is_rejected(client, payload):
    response = client.post("/api/question", json=payload)
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid question"}

def test_pipeline_failure_returns_500(fake_index_factory, fake_generator_factory):
    controller = AnswerController(fake_index_factory(error=RuntimeError("store offline")), fake_generator_factory(["unused"]))
    with TestClient(create_app(controller=controller, index_on_startup=False)) as client:
        response = client.post("/api/question", json={"question": "Who painted Water Lilies?"})
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}

def test_health_reports_row_count(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "rows": 1}

def test_lifespan_initialises_and_closes_services(services):
    index, controller = services
    with TestClient(create_app(controller=controller, index_on_startup=False)):
        assert index.initialized
    assert index.closed
