"""Application service layer for the matching session workflow."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict
from typing import Any, Iterable, Mapping, Sequence

from backend.core import catalog as catalog_index
from backend.core import matcher, patterns
from backend.core.expander import expand
from backend.core.normalize import parse_caid_pairs, parse_site_ids
from backend.core.schema import (
    CaidPair,
    CatalogEntry,
    ExpansionResult,
    FinalRow,
    Pattern,
    SiteRecord,
    TemplateBlockPattern,
)
from backend.core.selection import CaidSelection
from backend.core.settings import log_event
from backend.core.validation import InputIncompleteError, LookupMissError, SessionNotFoundError, require_quantity
from backend.domain import SessionState, UploadRecord
from backend.exporters import results_csv, results_xlsx
from backend.infrastructure import InMemorySessionRepository, SessionRepository

logger = logging.getLogger("caid_matcher.service")

EXPORT_FORMATS: dict[str, tuple[str, str]] = {
    "csv": ("text/csv", "csv"),
    "txt": ("text/plain", "txt"),
    "clipboard": ("text/plain", "txt"),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
}


class SessionService:
    """Coordinates the matching and expansion use cases."""

    STEP_DEFINITIONS: list[dict[str, object]] = [
        {
            "id": "input_sites",
            "label": "Input SITE ID",
            "description": "Paste or upload the ordered SITE ID list, one identifier per line.",
        },
        {
            "id": "upload_caids",
            "label": "Upload CAID Data",
            "description": "Upload the SITE_ID,CAID correspondence exported from BOQTracker.",
        },
        {
            "id": "review_matches",
            "label": "Match Results",
            "description": "Review which SITE IDs found a CAID; unmatched ones are dropped.",
        },
        {
            "id": "define_pattern",
            "label": "OAID Pattern",
            "description": "Duplicate rows, type an OAID pattern, pick it from the catalog or assign templates per CAID block.",
        },
        {
            "id": "export",
            "label": "Export",
            "description": "Download CSV/TXT/XLSX or copy the final rows.",
            "result_step": True,
        },
    ]

    def __init__(self, repository: SessionRepository) -> None:
        self._repository = repository

    # ------------------------------------------------------------------
    # session lifecycle
    # ------------------------------------------------------------------
    def create_session(self) -> str:
        session_id = self._repository.create_session()
        log_event(logger, logging.INFO, "session_created", session_id=session_id)
        return session_id

    def list_sessions(self) -> list[dict[str, object]]:
        return self._repository.list_sessions()

    def _state(self, session_id: str) -> SessionState:
        state = self._repository.get_session(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    def get_overview(self, session_id: str) -> dict[str, object]:
        state = self._state(session_id)
        return {
            "session_id": state.session_id,
            "uploads": self._repository.list_uploads(session_id),
            "sites": len(state.sites),
            "pairs": len(state.pairs),
            "matched": len(state.matched),
            "catalog": len(state.catalog),
            "regions": list(state.regions),
            "templates": len(state.templates),
            "blocks": len(state.blocks),
            "pattern": state.pattern.kind if state.pattern is not None else None,
        }

    # ------------------------------------------------------------------
    # upload bookkeeping
    # ------------------------------------------------------------------
    def begin_upload(self, session_id: str, kind: str, filename: str | None = None) -> str:
        self._state(session_id)
        job_id = self._repository.next_job_id()
        self._repository.register_upload(
            session_id, UploadRecord(job_id=job_id, kind=kind, filename=filename, status="processing")
        )
        return job_id

    def finish_upload(self, session_id: str, job_id: str, *, records: int) -> None:
        self._repository.update_upload(session_id, job_id, "completed", records=records)

    def fail_upload(self, session_id: str, job_id: str, error: str) -> None:
        self._repository.update_upload(session_id, job_id, "failed", error=error)

    # ------------------------------------------------------------------
    # inputs
    # ------------------------------------------------------------------
    def submit_sites(self, session_id: str, text: str | None) -> list[SiteRecord]:
        sites = parse_site_ids(text)
        if not sites:
            raise InputIncompleteError("enter at least one SITE ID")
        job_id = self.begin_upload(session_id, "sites")
        self.apply_sites(session_id, sites)
        self.finish_upload(session_id, job_id, records=len(sites))
        return sites

    def submit_caids(self, session_id: str, text: str | None) -> list[CaidPair]:
        pairs = parse_caid_pairs(text)
        if not pairs:
            raise InputIncompleteError("enter CAID data as SITE_ID,CAID lines")
        job_id = self.begin_upload(session_id, "caids")
        self.apply_pairs(session_id, pairs)
        self.finish_upload(session_id, job_id, records=len(pairs))
        return pairs

    def apply_sites(self, session_id: str, sites: Sequence[SiteRecord]) -> None:
        state = self._state(session_id)
        self._commit_inputs(state, sites=tuple(sites), pairs=state.pairs)

    def apply_pairs(self, session_id: str, pairs: Sequence[CaidPair]) -> None:
        state = self._state(session_id)
        self._commit_inputs(state, sites=state.sites, pairs=tuple(pairs))

    def _commit_inputs(self, state: SessionState, *, sites: tuple[SiteRecord, ...], pairs: tuple[CaidPair, ...]) -> None:
        # blocks and the active pattern refer to the previous CAID pool
        matched = tuple(matcher.match(sites, pairs)) if sites and pairs else ()
        self._repository.commit(
            state.session_id,
            sites=sites,
            pairs=pairs,
            matched=matched,
            blocks=(),
            pattern=None,
        )
        summary = matcher.summarize(sites, matched)
        log_event(
            logger,
            logging.INFO,
            "matched",
            session_id=state.session_id,
            sites=summary.total_sites,
            matched=summary.matched,
            unmatched=summary.unmatched,
        )

    def apply_catalog(self, session_id: str, index: catalog_index.CatalogIndex) -> None:
        state = self._state(session_id)
        regions = tuple(region for region in state.regions if region in index.by_region)
        self._repository.commit(session_id, catalog=index, regions=regions)
        log_event(logger, logging.INFO, "catalog_loaded", session_id=session_id, entries=len(index), regions=len(index.regions))

    def get_matches(self, session_id: str) -> dict[str, object]:
        state = self._state(session_id)
        summary = matcher.summarize(state.sites, state.matched)
        return {
            "items": [record.model_dump() for record in state.matched],
            "summary": summary.model_dump(),
        }

    # ------------------------------------------------------------------
    # catalog & regions
    # ------------------------------------------------------------------
    def list_regions(self, session_id: str) -> dict[str, object]:
        state = self._state(session_id)
        return {"available": state.catalog.regions, "selected": list(state.regions)}

    def select_regions(self, session_id: str, regions: Iterable[str]) -> tuple[str, ...]:
        state = self._state(session_id)
        selection = catalog_index.RegionSelection(available=state.catalog.regions)
        for region in regions:
            if region not in selection.selected:
                selection.toggle(str(region))
        selected = selection.confirm()
        self._repository.commit(session_id, regions=selected)
        return selected

    def _active_regions(self, state: SessionState, regions: Iterable[str] | None = None) -> tuple[str, ...]:
        chosen = tuple(regions) if regions else state.regions
        if not chosen:
            raise InputIncompleteError("select at least one region")
        return chosen

    def search_catalog(self, session_id: str, text: str | None, regions: Iterable[str] | None = None) -> list[CatalogEntry]:
        state = self._state(session_id)
        return catalog_index.search(state.catalog, self._active_regions(state, regions), text)

    def resolve_slot(self, session_id: str, payload: Mapping[str, Any]) -> dict[str, object]:
        state = self._state(session_id)
        slot = patterns.ReferenceSlot(
            long_description=str(payload.get("long_description") or "").strip(),
            quantity=require_quantity(payload.get("quantity") or 1),
        )
        slot, status = patterns.search_slot(slot, state.catalog, self._active_regions(state))
        return {
            "status": status,
            "selected_oaid": slot.selected_oaid,
            "candidates": [entry.model_dump() for entry in slot.candidates],
        }

    def _find_entry(self, state: SessionState, oaid: str) -> CatalogEntry:
        regions = set(self._active_regions(state))
        for entry in state.catalog.entries:
            if entry.oaid == oaid and entry.region in regions:
                return entry
        raise LookupMissError("OAID not found in the selected regions", detail={"oaid": oaid})

    # ------------------------------------------------------------------
    # patterns
    # ------------------------------------------------------------------
    def _set_pattern(self, session_id: str, pattern: Pattern) -> Pattern:
        self._repository.commit(session_id, pattern=pattern)
        log_event(logger, logging.INFO, "pattern_set", session_id=session_id, kind=pattern.kind)
        return pattern

    def set_duplication(self, session_id: str, count: Any) -> Pattern:
        self._state(session_id)
        return self._set_pattern(session_id, patterns.resolve_duplication(count))

    def set_direct(self, session_id: str, items: Iterable[Mapping[str, Any]], reference_caid: str | None = None) -> Pattern:
        state = self._state(session_id)
        return self._set_pattern(session_id, patterns.resolve_direct(items, reference_caid, state.matched))

    def set_referenced(
        self,
        session_id: str,
        slots: Iterable[Mapping[str, Any]],
        reference_caid: str | None,
    ) -> Pattern:
        state = self._state(session_id)
        regions = self._active_regions(state)
        resolved = [patterns.slot_from_payload(slot, state.catalog, regions) for slot in slots]
        return self._set_pattern(session_id, patterns.resolve_referenced(resolved, reference_caid, state.matched))

    # ------------------------------------------------------------------
    # templates
    # ------------------------------------------------------------------
    def list_templates(self, session_id: str) -> list[dict[str, object]]:
        return [template.model_dump() for template in self._state(session_id).templates.snapshot()]

    def add_template(self, session_id: str, payload: Mapping[str, Any]) -> dict[str, object]:
        return self._state(session_id).templates.add(payload).model_dump()

    def update_template(self, session_id: str, template_id: str, payload: Mapping[str, Any]) -> dict[str, object]:
        return self._state(session_id).templates.update(template_id, payload).model_dump()

    def delete_template(self, session_id: str, template_id: str) -> None:
        self._state(session_id).templates.delete(template_id)

    # ------------------------------------------------------------------
    # blocks
    # ------------------------------------------------------------------
    def available_caids(self, session_id: str) -> list[str]:
        state = self._state(session_id)
        return patterns.available_caids(state.matched, state.blocks)

    def select_range(self, session_id: str, start: str, end: str, selected: Sequence[str] = ()) -> dict[str, object]:
        """Add the CAIDs between two endpoints to an in-progress selection.

        Endpoints are looked up in the unassigned pool, so CAIDs already in a
        block are neither endpoints nor results. A missing endpoint leaves
        ``selected`` unchanged.
        """

        state = self._state(session_id)
        if not (start or "").strip() or not (end or "").strip():
            raise InputIncompleteError("enter both a start and an end CAID")
        selection = CaidSelection(
            available=patterns.available_caids(state.matched, state.blocks),
            selected=[str(caid) for caid in selected],
        )
        added = selection.add_range(start.strip(), end.strip())
        return {"added": added, "selected": selection.selected}

    def list_blocks(self, session_id: str) -> list[dict[str, object]]:
        return [block.model_dump() for block in self._state(session_id).blocks]

    def create_block(self, session_id: str, payload: Mapping[str, Any]) -> dict[str, object]:
        state = self._state(session_id)
        block_payload = dict(payload)
        catalog_items = block_payload.pop("catalog_items", None) or []
        if catalog_items:
            pattern_items = patterns.pattern_items(block_payload.get("oaid_pattern") or [])
            for item in catalog_items:
                entry = self._find_entry(state, str(item.get("oaid") or "").strip())
                pattern_items = patterns.add_catalog_item(pattern_items, entry, item.get("quantity") or 1)
            block_payload["oaid_pattern"] = list(pattern_items)

        block_id = f"block-{state.block_counter + 1:05d}"
        block = patterns.build_block(
            block_id,
            block_payload,
            matched=state.matched,
            blocks=state.blocks,
            templates=state.templates,
        )
        self._repository.commit(
            session_id,
            blocks=(*state.blocks, block),
            block_counter=state.block_counter + 1,
            pattern=self._pattern_after_block_change(state),
        )
        log_event(logger, logging.INFO, "block_created", session_id=session_id, block_id=block.id, caids=len(block.caids))
        return block.model_dump()

    def delete_block(self, session_id: str, block_id: str) -> None:
        state = self._state(session_id)
        if not any(block.id == block_id for block in state.blocks):
            raise LookupMissError("block not found", detail={"block_id": block_id})
        self._repository.commit(
            session_id,
            blocks=tuple(block for block in state.blocks if block.id != block_id),
            pattern=self._pattern_after_block_change(state),
        )

    @staticmethod
    def _pattern_after_block_change(state: SessionState) -> Pattern | None:
        # a finished block assignment must be finished again once its blocks change
        return None if isinstance(state.pattern, TemplateBlockPattern) else state.pattern

    def finish_blocks(self, session_id: str) -> dict[str, object]:
        state = self._state(session_id)
        pattern = patterns.resolve_blocks(state.blocks, state.templates)
        self._set_pattern(session_id, pattern)
        unassigned = len(patterns.available_caids(state.matched, state.blocks))
        if unassigned:
            log_event(logger, logging.WARNING, "caids_unassigned", session_id=session_id, count=unassigned)
        return {"pattern": pattern.model_dump(), "unassigned": unassigned}

    # ------------------------------------------------------------------
    # results & export
    # ------------------------------------------------------------------
    def _current_pattern(self, state: SessionState) -> Pattern:
        if state.pattern is None:
            raise InputIncompleteError("define a pattern first")
        if isinstance(state.pattern, TemplateBlockPattern):
            # pick up template edits made after the blocks were finished
            return patterns.resolve_blocks(state.blocks, state.templates)
        return state.pattern

    def get_results(self, session_id: str) -> ExpansionResult:
        state = self._state(session_id)
        return expand(state.matched, self._current_pattern(state))

    def export(self, session_id: str, fmt: str) -> tuple[bytes | str, str, str]:
        """Render the final rows; returns ``(content, media_type, filename)``."""

        if fmt not in EXPORT_FORMATS:
            raise LookupMissError("unknown export format", detail={"format": fmt, "supported": sorted(EXPORT_FORMATS)})
        rows: tuple[FinalRow, ...] = self.get_results(session_id).rows
        media_type, suffix = EXPORT_FORMATS[fmt]
        content: bytes | str
        if fmt == "csv":
            content = results_csv.to_csv(rows)
        elif fmt == "xlsx":
            content = results_xlsx.to_xlsx(rows)
        elif fmt == "clipboard":
            content = results_csv.to_clipboard(rows)
        else:
            content = results_csv.to_text(rows)
        state = self._state(session_id)
        self._repository.commit(session_id, exports=state.exports + 1)
        log_event(logger, logging.INFO, "exported", session_id=session_id, format=fmt, rows=len(rows))
        return content, media_type, f"{results_csv.DEFAULT_BASENAME}.{suffix}"

    # ------------------------------------------------------------------
    # progress
    # ------------------------------------------------------------------
    def get_progress(self, session_id: str) -> dict[str, object]:
        state = self._state(session_id)
        uploads = [asdict(upload) for upload in state.uploads]
        upload_counter = Counter(str(upload["status"]) for upload in uploads)
        match_summary = matcher.summarize(state.sites, state.matched)

        expansion: dict[str, object] | None = None
        if state.pattern is not None:
            try:
                expansion = self.get_results(session_id).summary.model_dump()
            except InputIncompleteError:
                expansion = None

        steps: list[dict[str, object]] = []
        completed_steps = 0
        next_step: str | None = None
        prerequisites_completed = True

        for step in self.STEP_DEFINITIONS:
            step_id = str(step["id"])
            meta: dict[str, object] = {}
            if step_id == "input_sites":
                done = bool(state.sites)
                meta = {"sites": len(state.sites)}
            elif step_id == "upload_caids":
                done = bool(state.pairs)
                meta = {"pairs": len(state.pairs)}
            elif step_id == "review_matches":
                done = bool(state.matched)
                meta = match_summary.model_dump()
            elif step_id == "define_pattern":
                done = state.pattern is not None
                meta = {
                    "kind": state.pattern.kind if state.pattern is not None else None,
                    "catalog_entries": len(state.catalog),
                    "regions": list(state.regions),
                    "templates": len(state.templates),
                    "blocks": len(state.blocks),
                }
            else:
                done = state.exports > 0
                meta = {"exports": state.exports, "expansion": expansion}

            if not prerequisites_completed:
                status = "blocked"
            else:
                status = "completed" if done else "pending"

            steps.append(
                {
                    "id": step_id,
                    "label": step["label"],
                    "description": step["description"],
                    "status": status,
                    "meta": meta,
                }
            )
            if status == "completed":
                completed_steps += 1
            elif next_step is None and status != "blocked":
                next_step = step_id
            prerequisites_completed = prerequisites_completed and status == "completed"

        return {
            "session_id": state.session_id,
            "overall": round(completed_steps / len(self.STEP_DEFINITIONS), 4),
            "steps": steps,
            "next_step": next_step,
            "summary": {
                "uploads": {"total": sum(upload_counter.values()), "by_status": dict(upload_counter)},
                "matches": match_summary.model_dump(),
                "expansion": expansion,
            },
        }

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()


_repository = InMemorySessionRepository()
_service = SessionService(_repository)


def get_session_service() -> SessionService:
    """Return the singleton session service for the process."""

    return _service


def reset_session_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
