"""Tests for the action pipeline — proves a rejected pack commits nothing."""

from companies.models.actions import CitizenJoinCompany, CitizenLeaveCompany
from companies.persistence.event_log import EventKind, EventLog
from companies.world.actions import ActionPack, ActionPipeline


def _join(world):
    citizen = world.create_citizen("Erin")
    legal = world.create_citizen("Acme Legal Person", synthetic=True)
    return CitizenJoinCompany(citizen=citizen, company_legal_identity=legal)


class TestPerform:
    def test_accepted_pack(self, world) -> None:
        log = EventLog()
        pipeline = ActionPipeline(log)
        effects = []
        action = _join(world)
        pack = ActionPack().add_action(action).add_post_effect(lambda: effects.append(1))

        outcome = pipeline.perform(pack)

        assert outcome.success
        assert effects == [1]
        assert list(pipeline.performed) == [action]
        [event] = log.events()
        assert event.event_id == "EVT-00000001"
        assert event.event_kind == EventKind.CITIZEN_JOIN_COMPANY
        assert event.actor_id == action.citizen.citizen_id
        assert event.payload == {"citizen": "Erin", "company": "Acme Legal Person"}

    def test_rejected_pack_commits_nothing(self, world) -> None:
        log = EventLog()
        pipeline = ActionPipeline(log)
        effects = []
        join = _join(world)
        leave = CitizenLeaveCompany(
            citizen=join.citizen, company_legal_identity=join.company_legal_identity,
        )
        pipeline.register_validator(
            lambda action: "No leaving" if isinstance(action, CitizenLeaveCompany) else None
        )
        pack = ActionPack(actions=[join, leave], post_effects=[lambda: effects.append(1)])

        outcome = pipeline.perform(pack)

        assert not outcome.success
        assert outcome.message == "No leaving"
        assert effects == []
        assert not pipeline.performed
        assert log.count == 0

    def test_unregistered_validator_ignored(self, world) -> None:
        pipeline = ActionPipeline()

        def veto(action):
            return "Nope"
        pipeline.register_validator(veto)
        pipeline.unregister_validator(veto)
        assert pipeline.perform(ActionPack().add_action(_join(world))).success

    def test_event_ids_continue_after_reload(self, world, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        ActionPipeline(EventLog(path)).perform(ActionPack().add_action(_join(world)))

        pipeline = ActionPipeline(EventLog(path))
        pipeline.perform(ActionPack().add_action(_join(world)))
        assert [e.event_id for e in pipeline.event_log.events()] == [
            "EVT-00000001",
            "EVT-00000002",
        ]

    def test_history_is_bounded(self, world) -> None:
        log = EventLog()
        pipeline = ActionPipeline(log, history=3)
        actions = [_join(world) for _ in range(5)]
        for action in actions:
            pipeline.perform(ActionPack().add_action(action))
        assert list(pipeline.performed) == actions[2:]
        assert log.count == 5
