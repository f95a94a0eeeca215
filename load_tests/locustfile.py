import os
import random

from locust import HttpUser, between, task


PORTAL_TOKEN = os.environ.get("LOADTEST_PORTAL_TOKEN", "test-token-001")

STRUCTURE = [
    {"id": "q1", "type": "rating", "label": "Technical Competence", "required": True, "layout": "half"},
    {"id": "q2", "type": "rating", "label": "Communication Skills", "required": True, "layout": "half"},
    {"id": "q3", "type": "boolean", "label": "Would you rehire this person?", "required": True},
    {"id": "q4", "type": "text", "label": "Why not?", "conditional": {"field": "q3", "value": False, "required": True}},
]


class FormEngineUser(HttpUser):
    wait_time = between(0.5, 2.0)

    @task(3)
    def validate_form(self) -> None:
        rehire = random.choice([True, False])
        responses = {"q1": random.randint(1, 5), "q2": random.randint(1, 5), "q3": rehire}
        if not rehire and random.random() < 0.5:
            responses["q4"] = "Moved on to another team"
        self.client.post("/forms/validate", json={"structure": STRUCTURE, "responses": responses})

    @task(2)
    def layout(self) -> None:
        mode = random.choice(["desktop", "mobile"])
        self.client.post("/forms/layout", json={"structure": STRUCTURE, "preview_mode": mode})

    @task(1)
    def lifecycle(self) -> None:
        status = random.choice(["PENDING_CONSENT", "Consent_Given", "Completed", "SEALED", "weird"])
        self.client.post("/requests/lifecycle", json={"status": status})

    @task(1)
    def portal(self) -> None:
        self.client.get(f"/portal/{PORTAL_TOKEN}", name="/portal/[token]")
