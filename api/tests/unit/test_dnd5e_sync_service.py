"""
Tests del orquestador de sincronización contra una API falsa y SQLite.

Propiedades verificadas:
- Idempotencia: dos corridas iguales dejan las mismas filas.
- UPSERT: mismo index con valores nuevos -> una sola fila actualizada.
- Reemplazo de hijas: {A, B, C} -> {B, D} deja exactamente {B, D}.
- Deduplicación de claves hijas repetidas.
- Fail-fast del camino enriquecido con rollback del item fallido.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from dnd_mirror.infrastructure.external.dnd5e_sync.registry import registry
from dnd_mirror.infrastructure.external.dnd5e_sync.sql_repository import SqlSyncRepository
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_config import SyncOptions
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_service import SyncOrchestrator
from dnd_mirror.shared.exceptions.sync import MappingError, RemoteUnavailable, StorageError


class _ExplodingRepository(SqlSyncRepository):
    """Repositorio que falla con un error no previsto al escribir un index dado."""

    def __init__(self, explode_on: str) -> None:
        super().__init__()
        self._explode_on = explode_on

    async def upsert(self, conn, *, table, key_columns, record) -> int:
        if record.get("index") == self._explode_on:
            raise RuntimeError("fallo inesperado")
        return await super().upsert(conn, table=table, key_columns=key_columns, record=record)


def _skill(index: str, name: str, **extra: Any) -> Dict[str, Any]:
    return {"index": index, "name": name, "desc": ["para1", "para2"], "ability_score": {"name": "DEX"}, **extra}


def _monster(index: str, proficiencies: List[Dict[str, Any]] = (), immunities: List[str] = ()) -> Dict[str, Any]:
    return {
        "index": index,
        "name": index.title(),
        "size": "Small",
        "type": "humanoid",
        "hit_points": 7,
        "proficiencies": list(proficiencies),
        "condition_immunities": [{"index": c, "name": c.title(), "url": f"/api/conditions/{c}"} for c in immunities],
    }


def _trait(index: str, races: List[str]) -> Dict[str, Any]:
    return {
        "index": index,
        "name": index.title(),
        "desc": ["texto"],
        "races": [{"index": r, "name": r.title(), "url": f"/api/races/{r}"} for r in races],
        "subraces": [],
        "proficiencies": [],
    }


class TestGenericPath:
    @pytest.mark.asyncio
    async def test_skills_scenario(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add("/api/skills", {"count": 1, "results": [{"name": "Acrobatics", "url": "/api/skills/acrobatics"}]})
        fake_api.add("/api/skills/acrobatics", _skill("acrobatics", "Acrobatics"))

        report = await registry.run(orchestrator, "skills")

        assert report.success
        assert report.message == "skills synced successfully! 1 records processed."
        rows = await table_rows("skills")
        assert [
            {k: r[k] for k in ("index", "name", "description", "ability_score")} for r in rows
        ] == [{"index": "acrobatics", "name": "Acrobatics", "description": "para1\n\npara2", "ability_score": "DEX"}]

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("skills", [_skill("acrobatics", "Acrobatics"), _skill("stealth", "Stealth")])

        await registry.run(orchestrator, "skills")
        first = await table_rows("skills")
        report = await registry.run(orchestrator, "skills")
        second = await table_rows("skills")

        assert report.success
        assert report.count == 2
        strip = lambda rows: [{k: v for k, v in r.items() if k != "last_updated"} for r in rows]  # noqa: E731
        assert strip(first) == strip(second)

    @pytest.mark.asyncio
    async def test_upsert_replaces_stale_values(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("skills", [_skill("acrobatics", "Acrobatics")])
        await registry.run(orchestrator, "skills")

        fake_api.add_resource("skills", [_skill("acrobatics", "Acrobacias", desc=["nuevo"], ability_score={"name": "STR"})])
        await registry.run(orchestrator, "skills")

        rows = await table_rows("skills")
        assert len(rows) == 1
        assert rows[0]["name"] == "Acrobacias"
        assert rows[0]["description"] == "nuevo"
        assert rows[0]["ability_score"] == "STR"

    @pytest.mark.asyncio
    async def test_mapping_error_fails_resource_but_not_other_items(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("alignments", [
            {"index": "lawful-good", "name": "Lawful Good", "abbreviation": "LG", "desc": "..."},
            {"index": "neutral", "name": "Neutral", "desc": "..."},
        ])

        report = await registry.run(orchestrator, "alignments")

        assert not report.success
        assert isinstance(report.first_failure, MappingError)
        assert "abbreviation" in report.message
        assert [r["index"] for r in await table_rows("alignments")] == ["lawful-good"]

    @pytest.mark.asyncio
    async def test_first_failure_follows_list_order(self, orchestrator, fake_api) -> None:
        fake_api.add_resource("skills", [
            _skill("acrobatics", "Acrobatics"),
            _skill("stealth", "Stealth"),
            {"index": "nameless"},
        ])
        fake_api.fail("/api/skills/stealth", 502)

        report = await registry.run(orchestrator, "skills")

        assert isinstance(report.first_failure, RemoteUnavailable)
        assert report.attempted == 3
        assert report.succeeded == 1

    @pytest.mark.asyncio
    async def test_unreachable_index(self, orchestrator, fake_api) -> None:
        fake_api.fail("/api/skills", 503)

        report = await registry.run(orchestrator, "skills")

        assert not report.success
        assert isinstance(report.first_failure, RemoteUnavailable)
        assert report.attempted == 0

    @pytest.mark.asyncio
    async def test_fan_out_respects_max_concurrency(self, sqlite_engine, fake_api) -> None:
        """Con max_concurrency=3 nunca hay más de 3 detalles en vuelo."""
        fake_api.add_resource("skills", [_skill(f"skill-{i}", f"Skill {i}") for i in range(20)])
        in_flight = 0
        peak = 0

        async def slow_details(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            if request.url.path == "/api/skills":
                return fake_api.handle(request)
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.01)
                return fake_api.handle(request)
            finally:
                in_flight -= 1

        orchestrator = SyncOrchestrator(
            sqlite_engine,
            SyncOptions(api_base_url="http://dnd.test", timeout_s=5.0, max_concurrency=3),
            transport=httpx.MockTransport(slow_details),
        )

        report = await registry.run(orchestrator, "skills")

        assert report.success
        assert report.count == 20
        assert 1 <= peak <= 3

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_logged(self, sqlite_engine, fake_api, log_messages) -> None:
        """Un error no previsto detrás de un SyncException igual queda en el log."""
        fake_api.add_resource("alignments", [
            {"index": "neutral", "name": "Neutral", "desc": "..."},
            {"index": "chaotic-evil", "name": "Chaotic Evil", "abbreviation": "CE", "desc": "..."},
        ])
        orchestrator = SyncOrchestrator(
            sqlite_engine,
            SyncOptions(api_base_url="http://dnd.test", timeout_s=5.0, max_concurrency=4),
            repository=_ExplodingRepository("chaotic-evil"),
            transport=fake_api.transport,
        )

        report = await registry.run(orchestrator, "alignments")

        assert isinstance(report.first_failure, MappingError)
        assert any("Error inesperado en alignments: RuntimeError" in m for m in log_messages)


class TestEnrichedPath:
    @pytest.mark.asyncio
    async def test_monster_condition_immunities_are_deduplicated(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("monsters", [_monster("goblin", immunities=["charmed", "charmed"])])

        report = await registry.run(orchestrator, "monsters")

        assert report.success
        assert report.message == "Monsters synced successfully! 1 records processed."
        rows = await table_rows("monster_condition_immunities")
        assert [(r["monster_index"], r["condition_index"]) for r in rows] == [("goblin", "charmed")]

    @pytest.mark.asyncio
    async def test_child_rows_are_replaced(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("traits", [_trait("darkvision", ["a", "b", "c"])])
        await registry.run(orchestrator, "traits")

        fake_api.add_resource("traits", [_trait("darkvision", ["b", "d"])])
        report = await registry.run(orchestrator, "traits")

        assert report.success
        rows = await table_rows("trait_races")
        assert sorted(r["race_index"] for r in rows) == ["b", "d"]
        assert len(await table_rows("traits")) == 1

    @pytest.mark.asyncio
    async def test_enriched_second_run_is_idempotent(self, orchestrator, fake_api, table_rows) -> None:
        proficiencies = [{"proficiency": {"index": "skill-stealth"}, "value": 6}]
        fake_api.add_resource("monsters", [_monster("goblin", proficiencies, ["poisoned"]), _monster("orc")])

        await registry.run(orchestrator, "monsters")
        first = [(r["monster_index"], r["proficiency_index"], r["value"]) for r in await table_rows("monster_proficiencies")]
        await registry.run(orchestrator, "monsters")
        second = [(r["monster_index"], r["proficiency_index"], r["value"]) for r in await table_rows("monster_proficiencies")]

        assert first == second == [("goblin", "skill-stealth", 6)]
        assert len(await table_rows("monsters")) == 2
        assert len(await table_rows("monster_condition_immunities")) == 1

    @pytest.mark.asyncio
    async def test_fail_fast_rolls_back_failed_item(self, orchestrator, fake_api, table_rows) -> None:
        ok = [{"proficiency": {"index": "skill-stealth"}, "value": 6}]
        broken = [{"proficiency": {"name": "sin index"}, "value": 1}]
        monsters = [
            _monster("m1", ok),
            _monster("m2", ok),
            _monster("m3", broken),
            _monster("m4", ok),
            _monster("m5", ok),
        ]
        fake_api.add_resource("monsters", monsters)

        report = await registry.run(orchestrator, "monsters")

        assert not report.success
        assert isinstance(report.first_failure, StorageError)
        assert report.attempted == 3
        assert report.succeeded == 2
        assert [r["index"] for r in await table_rows("monsters")] == ["m1", "m2"]
        assert sorted({r["monster_index"] for r in await table_rows("monster_proficiencies")}) == ["m1", "m2"]
        assert "/api/monsters/m4" not in fake_api.requested
        assert "/api/monsters/m5" not in fake_api.requested

    @pytest.mark.asyncio
    async def test_class_fetches_levels_and_spells(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("classes", [{
            "index": "wizard",
            "name": "Wizard",
            "hit_die": 6,
            "saving_throws": [{"index": "int", "name": "INT"}, {"index": "wis", "name": "WIS"}],
            "proficiency_choices": [],
            "starting_equipment": [{"equipment": {"index": "spellbook"}, "quantity": 1}],
            "starting_equipment_options": [],
            "class_levels": "/api/classes/wizard/levels",
            "spells": "/api/classes/wizard/spells",
        }])
        fake_api.add("/api/classes/wizard/levels", [
            {"level": 1, "prof_bonus": 2, "features": [{"name": "Spellcasting"}]},
            {"level": 2, "prof_bonus": 2, "features": []},
        ])
        fake_api.add("/api/classes/wizard/spells", {"count": 2, "results": [
            {"index": "fire-bolt", "level": 0},
            {"index": "fire-bolt", "level": 0},
        ]})

        report = await registry.run(orchestrator, "classes")

        assert report.success
        assert report.message == "Classes synced successfully! 1 records processed."
        classes = await table_rows("classes")
        assert classes[0]["saving_throws"] == '["INT","WIS"]'
        assert [r["level"] for r in await table_rows("class_levels")] == [1, 2]
        assert [(r["class_index"], r["spell_index"]) for r in await table_rows("class_spells")] == [("wizard", "fire-bolt")]
        assert [r["equipment_index"] for r in await table_rows("class_starting_equipment")] == ["spellbook"]

    @pytest.mark.asyncio
    async def test_missing_aux_document_aborts(self, orchestrator, fake_api, table_rows) -> None:
        fake_api.add_resource("subclasses", [{
            "index": "evocation",
            "name": "Evocation",
            "class": {"index": "wizard"},
            "desc": ["..."],
            "subclass_levels": "/api/subclasses/evocation/levels",
        }])

        report = await registry.run(orchestrator, "subclasses")

        assert isinstance(report.first_failure, RemoteUnavailable)
        assert await table_rows("subclasses") == []

    @pytest.mark.asyncio
    async def test_connection_released_after_failure_and_success(self, orchestrator, fake_api, sqlite_engine) -> None:
        fake_api.add_resource("monsters", [_monster("m1", [{"proficiency": {}, "value": 1}])])
        report = await registry.run(orchestrator, "monsters")

        assert not report.success
        assert sqlite_engine.pool.checkedout() == 0

        fake_api.add_resource("monsters", [_monster("m1", [{"proficiency": {"index": "skill-stealth"}, "value": 1}])])
        report = await registry.run(orchestrator, "monsters")

        assert report.success
        assert sqlite_engine.pool.checkedout() == 0

    @pytest.mark.asyncio
    async def test_connection_released_on_unexpected_error(self, sqlite_engine, fake_api, table_rows) -> None:
        fake_api.add_resource("monsters", [_monster("m1")])
        orchestrator = SyncOrchestrator(
            sqlite_engine,
            SyncOptions(api_base_url="http://dnd.test", timeout_s=5.0),
            repository=_ExplodingRepository("m1"),
            transport=fake_api.transport,
        )

        with pytest.raises(RuntimeError):
            await registry.run(orchestrator, "monsters")

        assert sqlite_engine.pool.checkedout() == 0
        assert await table_rows("monsters") == []

    @pytest.mark.asyncio
    async def test_processing_log_uses_listing_name(self, orchestrator, fake_api, log_messages) -> None:
        fake_api.add_resource("monsters", [_monster("goblin")])

        await registry.run(orchestrator, "monsters")

        assert "Procesando monsters: Goblin (goblin)" in log_messages
