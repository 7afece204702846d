"""Tests for the coordinator entry point."""

import threading

import pytest

from flowsmith.core.budget import BudgetState
from flowsmith.core.models import Job
from flowsmith.service.coordinator import Coordinator

SONNET = "anthropic/claude-sonnet-4-5"


class TestCoordinator:
    def test_generate_blueprint_job(self, settings, simple_job):
        result = Coordinator(settings).generate(simple_job)

        assert result["jobId"] == simple_job.id
        assert result["status"] == "completed"
        assert result["validation"]["valid"] is True

    def test_analyze(self, settings, complex_job):
        analysis = Coordinator(settings).analyze(complex_job)

        assert analysis.score == 12
        assert analysis.recommended_tier == "advanced"

    def test_cancelled_job(self, settings, simple_job):
        event = threading.Event()
        event.set()

        result = Coordinator(settings).generate(simple_job, cancel_event=event)

        assert result["status"] == "cancelled"
        assert result["reasonCode"] == "cancelled"
        assert result["metadata"] == {"costUsd": 0.0}
        assert "complexity analysis" in result["error"]

    def test_jobs_share_one_budget(self, settings, mock_llm_responses):
        budget = BudgetState(daily_limit_usd=10.0, per_call_limit_usd=1.0)
        coordinator = Coordinator(settings, budget=budget)
        jobs = [Job(id=f"job-{i}", processDescription="Forward new leads to the sales team") for i in range(2)]

        results = [coordinator.generate(job) for job in jobs]

        assert [r["status"] for r in results] == ["completed", "completed"]
        assert budget.daily_spend_usd == pytest.approx(sum(r["metadata"]["costUsd"] for r in results))
        assert mock_llm_responses.models_called() == [SONNET, SONNET]

    def test_concurrent_jobs(self, settings, mock_llm_responses):
        coordinator = Coordinator(settings)
        jobs = [Job(id=f"job-{i}", processDescription="Forward new leads to the sales team") for i in range(6)]
        results = {}

        def run(job):
            results[job.id] = coordinator.generate(job)

        threads = [threading.Thread(target=run, args=(job,)) for job in jobs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert {r["status"] for r in results.values()} == {"completed"}
        assert coordinator.cost_report()["summary"]["total_calls"] == 6
        for job in jobs:
            assert results[job.id]["metadata"]["attempts"] == 1

    def test_cost_report(self, settings, simple_job):
        coordinator = Coordinator(settings)
        coordinator.generate(simple_job)

        report = coordinator.cost_report()

        assert report["budget"]["within_budget"] is True
        assert report["summary"]["total_calls"] == 0
        assert report["recommendations"] == []

    def test_default_settings_are_loaded(self, simple_job):
        coordinator = Coordinator()

        assert coordinator.settings.credentials == {}
        assert coordinator.generate(simple_job)["status"] == "completed"
