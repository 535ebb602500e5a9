"""Tests for participant kind inference from names."""
from __future__ import annotations

import pytest

from pretty_dgmo.sequence.inference import RULE_COUNT, infer_participant_kind


class TestInferParticipantKind:
    @pytest.mark.parametrize(
        "name,kind",
        [
            ("User", "actor"),
            ("Customer", "actor"),
            ("AdminUser", "actor"),
            ("UserDB", "database"),
            ("Postgres", "database"),
            ("OrderRepository", "database"),
            ("Redis", "cache"),
            ("SessionCache", "cache"),
            ("Kafka", "queue"),
            ("OrderQueue", "queue"),
            ("APIGateway", "networking"),
            ("CDN", "networking"),
            ("OrderService", "service"),
            ("PaymentAPI", "service"),
            ("WebApp", "frontend"),
            ("Browser", "frontend"),
            ("PaymentVendor", "external"),
        ],
    )
    def test_common_names(self, name, kind):
        assert infer_participant_kind(name) == kind

    def test_unknown_names_are_plain(self):
        assert infer_participant_kind("A") == "plain"
        assert infer_participant_kind("Foo") == "plain"

    def test_matching_is_case_insensitive(self):
        assert infer_participant_kind("userdb") == "database"
        assert infer_participant_kind("REDIS") == "cache"


class TestRuleOrder:
    def test_router_is_networking_not_an_actor(self):
        assert infer_participant_kind("Router") == "networking"
        assert infer_participant_kind("LoadBalancer") == "networking"

    def test_keydb_is_a_cache_not_a_database(self):
        assert infer_participant_kind("KeyDB") == "cache"

    def test_webhook_is_external_not_frontend(self):
        assert infer_participant_kind("Webhook") == "external"

    def test_infrastructure_er_names_are_services(self):
        assert infer_participant_kind("Scheduler") == "service"
        assert infer_participant_kind("EventConsumer") == "service"

    def test_broker_is_a_queue(self):
        assert infer_participant_kind("MessageBroker") == "queue"

    def test_rule_table_is_populated(self):
        assert RULE_COUNT > 100
