import json

import pytest

from tarot_ai import ai, config

SIX_CARD_JSON = {
    "positions": [
        {"position": i, "card": name, "description": desc, "interpretation": f"{name} speaks to this."}
        for i, (name, desc) in enumerate(
            [
                ("The Fool", "How you feel about yourself now"),
                ("The Magician", "What you most want at this moment"),
                ("The High Priestess", "Your fears"),
                ("The Empress", "What is going for you"),
                ("The Emperor", "What is going against you"),
                ("The Hierophant", "The outcome according to your current situation"),
            ],
            start=1,
        )
    ],
    "overall": "A fresh start guided by intuition.",
}


class FakeBackend:
    """Stands in for the generative backend; records every prompt it receives."""

    def __init__(self):
        self.prompts = []
        self.reply = "The Star brings hope and renewal to your question."
        self.error = None

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(autouse=True)
def resume_dir(tmp_path, monkeypatch):
    path = tmp_path / "resume"
    monkeypatch.setattr(config, "RESUME_DIR", str(path))
    monkeypatch.setattr(config, "RESUME_SUBMIT_DELAY", 0)
    return path


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr(ai, "generate_text", fake)
    return fake


@pytest.fixture
def six_card_reply():
    return "Here is your reading:\n```json\n" + json.dumps(SIX_CARD_JSON) + "\n```\nBlessings."


@pytest.fixture
def six_card_json():
    return json.loads(json.dumps(SIX_CARD_JSON))
