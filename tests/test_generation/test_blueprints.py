"""Tests for deterministic blueprint generation."""

import json

import pytest

from flowsmith.core.models import Job
from flowsmith.generation.blueprints import (
    BLUEPRINT_SHAPES,
    HTTP_RETRY_OPTIONS,
    generate_blueprint,
    match_blueprint,
    normalize_step_type,
)
from flowsmith.generation.validator import WorkflowValidator


def make_job(*step_types, description="Pull orders and report"):
    return Job.model_validate(
        {
            "id": "job-bp",
            "processDescription": description,
            "automationOpportunities": [{"title": f"Step {t}", "stepType": t} for t in step_types],
        }
    )


class TestMatchBlueprint:
    @pytest.mark.parametrize(
        "step_types,expected",
        [
            (("api", "transform"), "api-fetch-transform"),
            (("http", "email"), "api-notify"),
            (("map", "send_email"), "transform-notify"),
            (("set", "google-sheets"), "sheets-append"),
            (("REST",), "http-only"),
            (("api", "code", "notification"), "api-transform-notify"),
            (("cron", "api", "transform"), "api-fetch-transform"),
        ],
    )
    def test_registered_shapes(self, step_types, expected):
        match = match_blueprint(make_job(*step_types))
        assert match is not None
        assert match.blueprint == expected

    def test_leading_trigger_selects_trigger_node(self):
        assert match_blueprint(make_job("schedule", "api")).trigger == "schedule"
        assert match_blueprint(make_job("api")).trigger == "webhook"

    @pytest.mark.parametrize(
        "step_types",
        [
            (),
            ("transform", "http"),
            ("api", "transform", "transform"),
            ("api", "ai_classify"),
            ("webhook",),
        ],
    )
    def test_no_match(self, step_types):
        assert match_blueprint(make_job(*step_types)) is None

    def test_missing_step_type_is_no_match(self):
        job = Job.model_validate(
            {"processDescription": "x", "automationOpportunities": [{"title": "Fetch", "stepType": "api"}, {"title": "?"}]}
        )
        assert match_blueprint(job) is None

    def test_normalize_step_type(self):
        assert normalize_step_type(" HTTP-Request ") == "http"
        assert normalize_step_type("Send Email") == "email"
        assert normalize_step_type(None) is None
        assert normalize_step_type("teleport") is None


class TestGenerateBlueprint:
    def test_simple_job(self, simple_job):
        draft = generate_blueprint(simple_job)

        assert [node.id for node in draft.nodes] == ["trigger_webhook", "step_1_http", "step_2_transform"]
        assert [(c.from_node, c.to_node) for c in draft.connections] == [
            ("trigger_webhook", "step_1_http"),
            ("step_1_http", "step_2_transform"),
        ]
        assert draft.metadata == {"generationPath": "blueprint", "blueprint": "api-fetch-transform"}
        assert draft.nodes[1].name == "HTTP Request - Fetch orders"

    def test_http_nodes_carry_retry_policy(self, simple_job):
        draft = generate_blueprint(simple_job)
        http = draft.nodes[1]

        assert http.type == "n8n-nodes-base.httpRequest"
        for key, value in HTTP_RETRY_OPTIONS.items():
            assert http.parameters["options"][key] == value

    def test_schedule_trigger(self):
        draft = generate_blueprint(make_job("schedule", "api", "email"))

        assert draft.nodes[0].type == "n8n-nodes-base.scheduleTrigger"
        assert [node.id for node in draft.nodes] == ["trigger_schedule", "step_1_http", "step_2_email"]

    def test_no_match_returns_none(self, complex_job):
        assert generate_blueprint(complex_job) is None

    def test_byte_identical_output(self, simple_job):
        first = json.dumps(generate_blueprint(simple_job).to_dict(), sort_keys=True)
        second = json.dumps(generate_blueprint(simple_job).to_dict(), sort_keys=True)

        assert first == second

    def test_same_content_different_job_id_is_identical(self, simple_job):
        other = simple_job.model_copy(update={"id": "another-id"})

        assert generate_blueprint(simple_job).to_dict() == generate_blueprint(other).to_dict()

    def test_node_names_are_unique(self):
        job = Job.model_validate(
            {
                "processDescription": "x",
                "automationOpportunities": [{"description": "a", "stepType": "api"}, {"description": "b", "stepType": "set"}],
            }
        )
        draft = generate_blueprint(job)

        assert len({node.name for node in draft.nodes}) == len(draft.nodes)

    @pytest.mark.parametrize("name", list(BLUEPRINT_SHAPES))
    def test_every_shape_validates_without_repairs(self, name):
        steps = {"http": "api", "transform": "transform", "email": "email", "sheets": "sheets"}
        job = make_job(*(steps[s] for s in BLUEPRINT_SHAPES[name]))

        report = WorkflowValidator().validate(generate_blueprint(job).to_dict())

        assert report.valid, report.result.to_dict()
        assert report.result.repairs_applied == []
