# src/proactive_bot/storage.py
import asyncio
import json
import logging
import os
import tempfile

from botbuilder.core import TurnContext
from botbuilder.schema import ConversationReference
from msrest.exceptions import DeserializationError

from .errors import CorruptReferenceError, ReferenceNotFoundError, StorageIOError


class FileReferenceStore:
    """
    Single-slot store for the receiving conversation's reference.

    Every save overwrites the previous reference. Concurrent saves are not
    serialized (last write wins); the file is replaced atomically so a load
    never sees a half-written reference.
    """

    def __init__(self, path: str):
        self.path = path

    async def remember(self, turn_context: TurnContext) -> ConversationReference:
        """Save the reference of the conversation the turn belongs to."""
        ref = TurnContext.get_conversation_reference(turn_context.activity)
        await self.save(ref)
        return ref

    async def save(self, reference: ConversationReference) -> None:
        payload = json.dumps(reference.serialize())
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as e:
            raise StorageIOError(f"could not write {self.path}: {e}") from e
        conversation_id = reference.conversation.id if reference.conversation else None
        logging.info("[REF] saved conversation=%s to %s", conversation_id, self.path)

    async def load(self) -> ConversationReference:
        try:
            raw = await asyncio.to_thread(self._read)
        except FileNotFoundError as e:
            raise ReferenceNotFoundError(f"no conversation reference at {self.path}") from e
        except UnicodeDecodeError as e:
            raise CorruptReferenceError(f"{self.path} is not UTF-8 text") from e
        except OSError as e:
            raise StorageIOError(f"could not read {self.path}: {e}") from e

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise CorruptReferenceError(f"{self.path} is not valid JSON") from e
        if not isinstance(data, dict):
            raise CorruptReferenceError(f"{self.path} does not hold a JSON object")
        try:
            return ConversationReference.deserialize(data)
        except DeserializationError as e:
            raise CorruptReferenceError(f"{self.path} is not a conversation reference") from e

    def _write(self, payload: str) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".ref-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _read(self) -> str:
        with open(self.path, encoding="utf-8") as f:
            return f.read()
