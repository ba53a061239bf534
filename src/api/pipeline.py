"""
Per-message orchestration.

One inbound chat message goes through: de-duplication, command
classification, clarification-reply detection, context resolution,
extraction and finally creation of a new assignment or application of an
update. The model-facing pieces are synchronous and run in worker threads.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from api.commands import CommandHandler
from api.metrics import (
    CLARIFICATIONS_TOTAL,
    CLASSIFICATIONS_TOTAL,
    MESSAGES_TOTAL,
    PIPELINE_LATENCY_SECONDS,
)
from clarification.deadline_parser import parse_model_deadline
from clarification.engine import (
    ClarificationEngine,
    ClarificationState,
    build_format_help,
)
from clarification.parallel import is_valid_parallel_code, normalize_parallel_code
from clarification.reply_parser import extract_assignment_id
from classification.message_classifier import COMMAND_PREFIX, Command, classify_message
from extraction.assignment_extractor import AssignmentExtractor
from extraction.context_resolver import ContextResolutionError, ContextResolver, MessageContext
from integration.waha_client import OutboundReply
from llm.llm_client import AllModelsFailedError
from llm.schemas import AssignmentInfo, AssignmentUpdate, Unrecognized
from marbot.formatting import format_deadline, sanitize_wa_md
from marbot.models import Assignment, FieldId
from marbot.timeutil import truncate_for_log
from matching.update_matcher import UpdateMatcher
from matching.updates import describe_deltas, update_deltas
from storage.assignment_store import AssignmentStore

logger = logging.getLogger(__name__)

DEDUP_SIZE = 100

MODELS_BUSY_REPLY = (
    "⚠️ Maaf, pesan ini belum bisa diproses karena layanan AI sedang sibuk.\n"
    "Coba kirim ulang pesannya beberapa menit lagi."
)
NO_DATE_REPLY = (
    "⏰ Jamnya sudah kuterima, tapi tugas ini belum punya tanggal deadline.\n"
    "Kirim tanggal dan jam sekaligus, misalnya: Deadline: 15-01 08:00"
)


@dataclass
class InboundMessage:
    sender_id: str
    chat_id: str
    text: str
    message_id: Optional[str] = None
    image_base64: Optional[str] = None
    quoted_text: Optional[str] = None


def assignment_summary(a: Assignment) -> str:
    lines = [
        f"📚 {sanitize_wa_md(a.course_name or '-')}",
        f"📝 {sanitize_wa_md(a.title or '-')}",
        f"⏰ {format_deadline(a.deadline)}",
    ]
    if a.parallel_code:
        lines.append(f"🧩 {a.parallel_code.upper()}")
    return "\n".join(lines)


class MessagePipeline:
    def __init__(
        self,
        store: AssignmentStore,
        extractor: AssignmentExtractor,
        matcher: UpdateMatcher,
        clarifier: ClarificationEngine,
        commands: CommandHandler,
        resolver: Optional[ContextResolver] = None,
        command_prefix: str = COMMAND_PREFIX,
        dedup_size: int = DEDUP_SIZE,
    ):
        self.store = store
        self.extractor = extractor
        self.matcher = matcher
        self.clarifier = clarifier
        self.commands = commands
        self.resolver = resolver
        self.command_prefix = command_prefix
        self._seen: Deque[str] = deque(maxlen=dedup_size)

    def _is_duplicate(self, message_id: Optional[str]) -> bool:
        if not message_id:
            return False
        if message_id in self._seen:
            return True
        self._seen.append(message_id)
        return False

    async def handle(self, msg: InboundMessage) -> List[OutboundReply]:
        start = time.perf_counter()
        kind = "ignored"
        try:
            if self._is_duplicate(msg.message_id):
                kind = "duplicate"
                logger.info(f"Skipping duplicate message {msg.message_id}")
                return []

            text = (msg.text or "").strip()
            if not text and msg.image_base64 is None:
                return []

            classified = classify_message(text, self.command_prefix)
            if isinstance(classified, Command):
                kind = "command"
                reply = await self.commands.handle(classified, msg.sender_id)
                return [OutboundReply(msg.chat_id, reply, reply_to=msg.message_id)]

            pending = await self._pending_assignment(text, msg.quoted_text)
            if pending is not None:
                kind = "clarification"
                texts = await self._handle_clarification(pending, text)
            else:
                kind = "extraction"
                texts = await self._handle_extraction(msg, text)
            return [OutboundReply(msg.chat_id, t, reply_to=msg.message_id) for t in texts]
        finally:
            MESSAGES_TOTAL.labels(kind=kind).inc()
            PIPELINE_LATENCY_SECONDS.labels(kind=kind).observe(time.perf_counter() - start)

    async def _pending_assignment(self, text: str, quoted_text: Optional[str]) -> Optional[Assignment]:
        """Assignment this message clarifies, if it names one still missing fields.

        Replies that quote a complete assignment (e.g. a `#expand` detail) are
        ordinary chat and go to extraction.
        """
        assignment_id = extract_assignment_id(text) or extract_assignment_id(quoted_text or "")
        if assignment_id is None:
            return None
        assignment = await self.store.get_assignment(assignment_id)
        if assignment is None:
            return None
        if self.clarifier.state_of(assignment) is not ClarificationState.AWAITING_CLARIFICATION:
            logger.info(f"Assignment {assignment_id} is complete, not a clarification reply")
            return None
        return assignment

    # clarification replies

    async def _handle_clarification(self, pending: Assignment, text: str) -> List[str]:
        outcome = self.clarifier.handle_reply(pending, text)
        CLARIFICATIONS_TOTAL.labels(outcome=outcome.error_kind or outcome.state.value).inc()

        if outcome.state is ClarificationState.CANCELLED:
            return [f"❎ Oke, klarifikasi untuk *{sanitize_wa_md(pending.title or 'tugas ini')}* dibatalkan."]

        if outcome.error is not None:
            if outcome.error_kind == "no_date":
                return [NO_DATE_REPLY]
            return [build_format_help()]

        fields: Dict[str, Any] = {}
        notes: List[str] = []
        for field_id, value in outcome.changes.items():
            if field_id is FieldId.COURSE_NAME:
                course = await self.store.find_course(value)
                if course is None:
                    notes.append(f"⚠️ Mata kuliah *{sanitize_wa_md(value)}* tidak dikenal.")
                    continue
                fields["course_id"] = course.id
            else:
                fields[field_id.value] = value

        updated = await self.store.update_assignment(pending.id, fields) if fields else pending
        if updated is None:
            return ["❌ Tugas ini sudah tidak ada."]

        messages = self.clarifier.prompt_messages(updated)
        if messages:
            head = "✅ Sebagian info tersimpan." if fields else "ℹ️ Belum ada info baru yang tersimpan."
            return ["\n".join([head, *notes]), *messages]
        return [f"✅ *Tugas lengkap!*\n\n{assignment_summary(updated)}"]

    # extraction

    async def _resolve_context(self, text: str, sender_id: str, courses) -> MessageContext:
        if self.resolver is None:
            return MessageContext.empty()
        history = await self.store.sender_history(sender_id)
        try:
            return await asyncio.to_thread(self.resolver.resolve, text, history, courses)
        except ContextResolutionError as e:
            logger.warning(f"Context resolution failed, continuing without hints: {e}")
            return MessageContext.empty()

    async def _handle_extraction(self, msg: InboundMessage, text: str) -> List[str]:
        courses = await self.store.list_courses()
        active = await self.store.list_active_assignments()
        context = await self._resolve_context(text, msg.sender_id, courses)

        try:
            verdict = await asyncio.to_thread(
                self.extractor.extract, text, courses, active, msg.image_base64, context
            )
        except AllModelsFailedError as e:
            logger.error(f"Extraction failed for '{truncate_for_log(text)}': {e}")
            return [MODELS_BUSY_REPLY]

        CLASSIFICATIONS_TOTAL.labels(type=verdict.type).inc()

        if isinstance(verdict, Unrecognized):
            logger.info(f"Unrecognized: {truncate_for_log(text)}")
            return []
        if isinstance(verdict, AssignmentInfo):
            return await self._create_assignment(msg, verdict)
        if isinstance(verdict, AssignmentUpdate):
            return await self._apply_update(verdict, active, text)
        return []

    async def _create_assignment(self, msg: InboundMessage, info: AssignmentInfo) -> List[str]:
        course = await self.store.find_course(info.course_name) if info.course_name else None
        parallel = normalize_parallel_code(info.parallel_code or "")

        assignment = Assignment(
            course_id=course.id if course else None,
            course_name=course.name if course else None,
            title=info.title.strip(),
            description=info.description.strip(),
            deadline=parse_model_deadline(info.deadline),
            parallel_code=parallel if is_valid_parallel_code(parallel) else None,
            sender_id=msg.sender_id,
            message_id=msg.message_id,
        )
        saved = await self.store.create_assignment(assignment)
        logger.info(f"New assignment {saved.id}: {truncate_for_log(saved.title)}")

        messages = self.clarifier.prompt_messages(saved)
        if messages:
            return messages
        return [f"📌 *Tugas baru tercatat*\n\n{assignment_summary(saved)}"]

    async def _apply_update(self, update: AssignmentUpdate, candidates, text: str) -> List[str]:
        try:
            matched = await asyncio.to_thread(self.matcher.match, update, candidates, text)
        except AllModelsFailedError:
            return [MODELS_BUSY_REPLY]

        if matched is None:
            logger.info(f"Update not matched with confidence: {truncate_for_log(update.changes)}")
            return ["🤔 Ada info perubahan tugas, tapi aku belum yakin tugas yang mana. Tidak ada yang diubah."]

        deltas = update_deltas(update)
        if not deltas:
            return []

        updated = await self.store.update_assignment(matched, {f.value: v for f, v in deltas.items()})
        if updated is None:
            return []
        logger.info(f"Applied update to {matched}: {describe_deltas(deltas)}")

        replies = [f"🔄 *Tugas diperbarui*\n\n{assignment_summary(updated)}"]
        replies += self.clarifier.prompt_messages(updated)
        return replies
