"""
Locust load test for the Scoreline API.

Prereq: pip install -e ".[loadtest]"

Run:
  locust -f scripts/load_test_locust.py --host=http://localhost:8000
  locust -f scripts/load_test_locust.py --host=http://localhost:8000 --users 50 --spawn-rate 5 --run-time 1m
"""
import random
from datetime import date, timedelta

from locust import HttpUser, between, task

POPULAR_LEAGUES = [39, 78, 135, 140]


class ScorelineUser(HttpUser):
    wait_time = between(0.5, 1.5)

    def on_start(self):
        r = self.client.get("/health")
        if r.status_code != 200:
            raise Exception("Health check failed")

    @task(2)
    def health(self):
        self.client.get("/health")

    @task(6)
    def today(self):
        self.client.get(f"/fixtures/date/{date.today().isoformat()}", name="/fixtures/date/[today]")

    @task(2)
    def nearby_day(self):
        day = date.today() + timedelta(days=random.choice([-2, -1, 1, 2]))
        self.client.get(f"/fixtures/date/{day.isoformat()}?all=false", name="/fixtures/date/[nearby]")

    @task(4)
    def live(self):
        self.client.get("/fixtures/live")

    @task(1)
    def league(self):
        self.client.get(f"/fixtures/league/{random.choice(POPULAR_LEAGUES)}", name="/fixtures/league/[id]")
