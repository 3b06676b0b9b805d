"""Visualization pipeline orchestration.

MODULE_DESCRIPTION
==================
``VisualizationPipeline`` is the single entry point the HTTP layer talks to. Every
public method returns an ``Outcome`` and never raises.

Per costed call the order is fixed:

    input validation (zero cost, no outbound call)
      -> authentication (user id required)
      -> load document (owner scoped, when one is referenced)
      -> admission check (token balance, then fixed-window rate limit)
      -> operation (model call(s), schema validation, merge)
      -> persist
      -> charge (only after success; a failed charge is logged, never surfaced)

History entries for an edit are appended before the result is returned, so a
caller that receives a success can trust the stored transcript already has it.
A failed edit on a stored document persists only the appended history entries,
also when the failure is the save of the edited payload itself.

A node is expanded at most once per document; expanded ids live in
``metadata.expanded_nodes``.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from admission.config import OperationClass
from admission.controller import AdmissionController
from api.utils.debug import print__admission_debug, print__pipeline_debug
from storage.config import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT, MAX_PAYLOAD_BYTES, MAX_TITLE_LENGTH
from storage.documents import DocumentStore, generate_share_id
from viz_agent.export import EXPORT_FORMATS, export_document
from viz_agent.format_selector import get_format_recommendations, select_format
from viz_agent.generator import generate
from viz_agent.mutator import (
    ExpansionContext,
    NoStructuralChange,
    apply_edit,
    edit_document,
    expand_node,
)
from viz_agent.utils.document import (
    EXPANDABLE_KINDS,
    DocumentMetadata,
    HistoryEntry,
    VisualizationDocument,
    VisualizationKind,
    append_exchange,
    calculate_cost,
)
from viz_agent.utils.errors import (
    AdmissionDenied,
    DocumentNotFound,
    ErrorCategory,
    InputValidationError,
    NotVisualizable,
    Outcome,
    PipelineError,
    SchemaViolation,
    Unauthenticated,
    returns_outcome,
)
from viz_agent.utils.schemas import validate

MAX_INPUT_LENGTH = 10000
MAX_NODE_ID_LENGTH = 200
DRAFT_TITLE_LENGTH = 60

FAILED_EDIT_REPLIES = {
    ErrorCategory.GENERATION_CONTRACT_VIOLATION: (
        "I couldn't apply that change because the generated result was invalid. "
        "Please try again."
    ),
    ErrorCategory.UPSTREAM_UNAVAILABLE: (
        "I couldn't reach the visualization service. Please try again later."
    ),
    ErrorCategory.NODE_NOT_FOUND: (
        "That node no longer exists in this visualization. Reload it and try again."
    ),
}
DEFAULT_FAILED_EDIT_REPLY = "I couldn't apply that change."


@dataclass
class EditResult:
    """Result of an edit: the document as computed by this request."""

    document: VisualizationDocument
    changed: bool
    reply: str


# ==============================================================================
# INPUT VALIDATION
# ==============================================================================
def validate_text(value: Any, field: str, max_length: int = MAX_INPUT_LENGTH) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError(f"{field} must be a non-empty string")
    if len(value) > max_length:
        raise InputValidationError(f"{field} exceeds {max_length} characters")
    return value.strip()


def validate_kind(kind: Any) -> VisualizationKind:
    try:
        return VisualizationKind(kind)
    except ValueError as exc:
        raise InputValidationError(f"unsupported visualization kind '{kind}'") from exc


def validate_client_payload(kind: VisualizationKind, payload: Any) -> Dict[str, Any]:
    """Client-supplied payloads go through the same schema as model output."""
    try:
        payload = validate(kind, payload)
    except SchemaViolation as exc:
        raise InputValidationError(exc.detail) from exc
    size = len(json.dumps(payload, ensure_ascii=False).encode("utf-8"))
    if size > MAX_PAYLOAD_BYTES:
        raise InputValidationError(f"payload exceeds {MAX_PAYLOAD_BYTES} bytes")
    return payload


def validate_history(history: Optional[Sequence[Any]]) -> List[HistoryEntry]:
    entries = []
    for entry in history or []:
        try:
            entries.append(
                entry if isinstance(entry, HistoryEntry) else HistoryEntry.model_validate(entry)
            )
        except ValueError as exc:
            raise InputValidationError("history entries need a role and text") from exc
    return entries


def validate_expanded_nodes(node_ids: Sequence[Any]) -> List[str]:
    if isinstance(node_ids, str) or not all(
        isinstance(node_id, str) and 0 < len(node_id) <= MAX_NODE_ID_LENGTH for node_id in node_ids
    ):
        raise InputValidationError("expanded_nodes must be a list of node ids")
    return list(dict.fromkeys(node_ids))


def derive_title(input_text: str) -> str:
    first_line = input_text.strip().splitlines()[0].strip()
    if len(first_line) <= DRAFT_TITLE_LENGTH:
        return first_line
    return first_line[: DRAFT_TITLE_LENGTH - 3].rstrip() + "..."


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthenticated("no verified user identity")
    return user_id


# ==============================================================================
# PIPELINE
# ==============================================================================
class VisualizationPipeline:
    def __init__(
        self,
        model,
        admission: AdmissionController,
        documents: DocumentStore,
        max_input_length: int = MAX_INPUT_LENGTH,
    ):
        self.model = model
        self.admission = admission
        self.documents = documents
        self.max_input_length = max_input_length

    # --------------------------------------------------------------------------
    # helpers
    # --------------------------------------------------------------------------
    async def _admit(self, user_id: str, operation: OperationClass) -> None:
        outcome = await self.admission.check_admission(user_id, operation)
        if not outcome.ok:
            raise outcome.error

    async def _charge(self, user_id: str, operation: OperationClass) -> None:
        """Charge after success; a failure here is ledger drift, logged and accepted."""
        outcome = await self.admission.charge(user_id, operation)
        if not outcome.ok:
            print__admission_debug(
                f"⚠️ CHARGE FAILED: {user_id} {operation.value}: {outcome.error.detail} "
                f"(result still returned)"
            )

    async def _load(self, user_id: str, document_id: str) -> VisualizationDocument:
        document = await self.documents.find_by_id(document_id, user_id)
        if document is None:
            raise DocumentNotFound(f"document {document_id} not found for owner")
        return document

    def _draft(
        self,
        user_id: str,
        kind: Any,
        payload: Any,
        history: Optional[Sequence[Any]],
    ) -> VisualizationDocument:
        if kind is None or payload is None:
            raise InputValidationError("either document_id or kind and payload are required")
        kind = validate_kind(kind)
        return VisualizationDocument(
            owner_id=user_id,
            kind=kind,
            payload=validate_client_payload(kind, payload),
            history=validate_history(history),
        )

    async def _persist(
        self, document: VisualizationDocument, patch: Dict[str, Any]
    ) -> VisualizationDocument:
        """Write ``patch`` for a stored document; a draft just gets the patch applied."""
        if document.id is None:
            return document.model_copy(update=patch)
        updated = await self.documents.update(document.id, document.owner_id, patch)
        if updated is None:
            raise DocumentNotFound(f"document {document.id} disappeared during update")
        return updated

    async def _record_failed_edit(
        self, document: VisualizationDocument, instruction: str, error: PipelineError
    ) -> Outcome:
        """Append the exchange for a failed edit; the payload stays as it was."""
        reply = FAILED_EDIT_REPLIES.get(error.category, DEFAULT_FAILED_EDIT_REPLY)
        history_patch = {"history": append_exchange(document.history, instruction, reply)}
        try:
            failed = await self._persist(document, history_patch)
        except PipelineError as exc:
            print__pipeline_debug(f"⚠️ EDIT: could not persist failure transcript: {exc.detail}")
            failed = document.model_copy(update=history_patch)
        return Outcome.failure(error, value=EditResult(failed, False, reply))

    # --------------------------------------------------------------------------
    # generate
    # --------------------------------------------------------------------------
    async def _generate_visualization(
        self, user_id: Optional[str], input_text: str, preferred_kind: Optional[str] = None
    ) -> VisualizationDocument:
        input_text = validate_text(input_text, "input", self.max_input_length)
        if preferred_kind is not None:
            preferred_kind = validate_kind(preferred_kind).value
        user_id = require_user(user_id)
        await self._admit(user_id, OperationClass.GENERATE)

        started = time.perf_counter()
        selection = await select_format(input_text, self.model, preferred_kind)
        if not selection.ok:
            raise selection.error
        choice = selection.value
        if not choice.is_visualizable:
            raise NotVisualizable(choice.reason)

        kind = choice.visualization_kind
        generated = await generate(kind, input_text, self.model)
        if not generated.ok:
            raise generated.error

        document = VisualizationDocument(
            owner_id=user_id,
            kind=kind,
            title=derive_title(input_text),
            payload=generated.value,
            metadata=DocumentMetadata(
                model=getattr(self.model, "model_name", None),
                original_input=input_text,
                cost_estimate=calculate_cost(len(input_text), kind),
                processing_ms=int((time.perf_counter() - started) * 1000),
                reason=choice.reason,
            ),
        )
        await self._charge(user_id, OperationClass.GENERATE)
        print__pipeline_debug(f"🎉 GENERATED: {kind.value} draft for {user_id}")
        return document

    generate_visualization = returns_outcome(_generate_visualization)

    async def _recommend_formats(self, user_id: Optional[str], input_text: str):
        input_text = validate_text(input_text, "input", self.max_input_length)
        user_id = require_user(user_id)
        await self._admit(user_id, OperationClass.RECOMMEND)

        outcome = await get_format_recommendations(input_text, self.model)
        if not outcome.ok:
            raise outcome.error
        await self._charge(user_id, OperationClass.RECOMMEND)
        return outcome.value

    recommend_formats = returns_outcome(_recommend_formats)

    # --------------------------------------------------------------------------
    # edit
    # --------------------------------------------------------------------------
    async def _edit_visualization(
        self,
        user_id: Optional[str],
        instruction: str,
        document_id: Optional[str] = None,
        kind: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence[Any]] = None,
    ):
        instruction = validate_text(instruction, "instruction", self.max_input_length)
        draft = None if document_id else self._draft(user_id or "", kind, payload, history)
        user_id = require_user(user_id)
        document = draft if draft is not None else await self._load(user_id, document_id)
        await self._admit(user_id, OperationClass.EDIT)

        outcome = await edit_document(
            document.kind, document.payload, instruction, document.history, self.model
        )
        if outcome.ok:
            try:
                new_payload = apply_edit(document.kind, document.payload, outcome.value)
            except PipelineError as exc:
                outcome = Outcome.failure(exc)

        if not outcome.ok:
            return await self._record_failed_edit(document, instruction, outcome.error)

        edit = outcome.value
        if isinstance(edit, NoStructuralChange):
            reply, changed = edit.assistant_reply, False
            patch = {"history": append_exchange(document.history, instruction, reply)}
        else:
            reply, changed = edit.reply, True
            patch = {
                "payload": new_payload,
                "history": append_exchange(document.history, instruction, reply),
            }
        try:
            updated = await self._persist(document, patch)
        except PipelineError as exc:
            print__pipeline_debug(f"⚠️ EDIT: could not persist edited document: {exc.detail}")
            return await self._record_failed_edit(document, instruction, exc)
        await self._charge(user_id, OperationClass.EDIT)
        print__pipeline_debug(
            f"✏️ EDITED: {updated.id or 'draft'} {type(edit).__name__} changed={changed}"
        )
        return EditResult(updated, changed, reply)

    edit_visualization = returns_outcome(_edit_visualization)

    # --------------------------------------------------------------------------
    # expand
    # --------------------------------------------------------------------------
    async def _expand_visualization_node(
        self,
        user_id: Optional[str],
        node_id: str,
        document_id: Optional[str] = None,
        kind: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        original_input: str = "",
        expanded_nodes: Optional[Sequence[str]] = None,
    ):
        node_id = validate_text(node_id, "node_id", MAX_NODE_ID_LENGTH)
        if original_input and len(original_input) > self.max_input_length:
            raise InputValidationError(f"original_input exceeds {self.max_input_length} characters")
        draft = None if document_id else self._draft(user_id or "", kind, payload, None)
        if draft is not None and expanded_nodes:
            draft.metadata.expanded_nodes = validate_expanded_nodes(expanded_nodes)
        user_id = require_user(user_id)
        document = draft if draft is not None else await self._load(user_id, document_id)
        if document.kind not in EXPANDABLE_KINDS:
            raise InputValidationError(f"{document.kind.value} does not support node expansion")
        if node_id in document.metadata.expanded_nodes:
            raise InputValidationError(f"node '{node_id}' has already been expanded")
        await self._admit(user_id, OperationClass.EXPAND)

        context = ExpansionContext(original_input or document.metadata.original_input)
        outcome = await expand_node(document.kind, document.payload, node_id, context, self.model)
        if not outcome.ok:
            if draft is not None and outcome.value is not None:
                # Hand back the caller's own object, not the normalised copy
                return Outcome.failure(outcome.error, value=payload)
            return outcome

        metadata = document.metadata.model_copy(
            update={"expanded_nodes": [*document.metadata.expanded_nodes, node_id]}
        )
        updated = await self._persist(document, {"payload": outcome.value, "metadata": metadata})
        await self._charge(user_id, OperationClass.EXPAND)
        return updated

    expand_visualization_node = returns_outcome(_expand_visualization_node)

    # --------------------------------------------------------------------------
    # persistence operations
    # --------------------------------------------------------------------------
    async def _save_visualization(
        self,
        user_id: Optional[str],
        title: str,
        kind: str,
        payload: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence[Any]] = None,
        is_public: bool = False,
        document_id: Optional[str] = None,
    ) -> VisualizationDocument:
        title = validate_text(title, "title", MAX_TITLE_LENGTH)
        kind = validate_kind(kind)
        payload = validate_client_payload(kind, payload)
        history_entries = validate_history(history)
        try:
            document_metadata = DocumentMetadata.model_validate(metadata or {})
        except ValueError as exc:
            raise InputValidationError("metadata is malformed") from exc
        user_id = require_user(user_id)
        await self._admit(user_id, OperationClass.SAVE)

        if document_id:
            patch = {"title": title, "kind": kind, "payload": payload, "is_public": is_public}
            if history is not None:
                patch["history"] = history_entries
            if metadata is not None:
                patch["metadata"] = document_metadata
            saved = await self.documents.update(document_id, user_id, patch)
            if saved is None:
                raise DocumentNotFound(f"document {document_id} not found for owner")
        else:
            limit = await self.admission.document_limit(user_id)
            if await self.documents.count_by_owner(user_id) >= limit:
                raise AdmissionDenied(
                    f"saved document limit {limit} reached",
                    reason="document_limit",
                    user_message=(
                        f"Permission denied: you can save at most {limit} visualizations."
                    ),
                )
            saved = await self.documents.create(
                VisualizationDocument(
                    owner_id=user_id,
                    kind=kind,
                    title=title,
                    payload=payload,
                    history=history_entries,
                    metadata=document_metadata,
                    is_public=is_public,
                )
            )
        await self._charge(user_id, OperationClass.SAVE)
        print__pipeline_debug(f"💾 SAVED: {saved.id} for {user_id}")
        return saved

    save_visualization = returns_outcome(_save_visualization)

    async def _delete_visualization(self, user_id: Optional[str], document_id: str) -> dict:
        document_id = validate_text(document_id, "document_id", MAX_NODE_ID_LENGTH)
        user_id = require_user(user_id)
        await self._admit(user_id, OperationClass.DELETE)
        if not await self.documents.delete(document_id, user_id):
            raise DocumentNotFound(f"document {document_id} not found for owner")
        await self._charge(user_id, OperationClass.DELETE)
        return {"id": document_id, "deleted": True}

    delete_visualization = returns_outcome(_delete_visualization)

    async def _export_visualization(
        self,
        user_id: Optional[str],
        document_id: str,
        export_format: str,
        include_metadata: bool = False,
    ) -> dict:
        if (export_format or "").lower() not in EXPORT_FORMATS:
            raise InputValidationError(f"unsupported export format '{export_format}'")
        user_id = require_user(user_id)
        document = await self._load(user_id, document_id)
        await self._admit(user_id, OperationClass.EXPORT)
        exported = export_document(document, export_format, include_metadata)
        await self._charge(user_id, OperationClass.EXPORT)
        return exported

    export_visualization = returns_outcome(_export_visualization)

    async def _share_visualization(self, user_id: Optional[str], document_id: str):
        user_id = require_user(user_id)
        document = await self._load(user_id, document_id)
        await self._admit(user_id, OperationClass.SHARE)
        if document.is_public and document.share_id:
            shared = document
        else:
            shared = await self._persist(
                document,
                {"is_public": True, "share_id": document.share_id or generate_share_id()},
            )
        await self._charge(user_id, OperationClass.SHARE)
        return shared

    share_visualization = returns_outcome(_share_visualization)

    # --------------------------------------------------------------------------
    # reads
    # --------------------------------------------------------------------------
    async def _get_visualization(self, user_id: Optional[str], document_id: str):
        return await self._load(require_user(user_id), document_id)

    get_visualization = returns_outcome(_get_visualization)

    async def _list_visualizations(self, user_id: Optional[str], limit: int = DEFAULT_LIST_LIMIT):
        if not 1 <= limit <= MAX_LIST_LIMIT:
            raise InputValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        return await self.documents.list_by_owner(require_user(user_id), limit)

    list_visualizations = returns_outcome(_list_visualizations)

    async def _get_shared_visualization(self, share_id: str):
        share_id = validate_text(share_id, "share_id", MAX_NODE_ID_LENGTH)
        document = await self.documents.find_by_share_id(share_id)
        if document is None:
            raise DocumentNotFound(f"no public document for share id {share_id}")
        return document

    get_shared_visualization = returns_outcome(_get_shared_visualization)

    async def _get_usage(self, user_id: Optional[str]) -> dict:
        outcome = await self.admission.get_balance(require_user(user_id))
        if not outcome.ok:
            raise outcome.error
        return outcome.value

    get_usage = returns_outcome(_get_usage)
