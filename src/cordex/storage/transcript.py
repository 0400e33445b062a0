from __future__ import annotations
import json
import datetime as dt
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Literal

from cordex.core.messages import Message, ROLES, Role

Status = Literal['complete', 'partial', 'error']


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


class Transcript:
    """
    Single transcript class.
    - If root_dir is provided: file-backed JSONL at <root_dir>/<session_id>.jsonl
    - If root_dir is None: in-memory only
    - Exposes .messages for provider calls; turns recorded with status
      'error' are kept in the log but never sent back to a provider
    - If a file already exists for session_id, it resumes from it
    """

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
        root_dir: Optional[Path] = None,
        header_meta: Optional[Dict] = None,
    ):
        self._system_prompt = system_prompt
        self._root_dir = Path(root_dir) if root_dir else None
        self._session_id = session_id or dt.datetime.now(dt.timezone.utc).strftime('%Y%m%d-%H%M%S')
        self._header_meta = header_meta or {}
        self._messages: List[Message] = []
        self._records: List[Dict[str, Any]] = []
        self._path: Optional[Path] = None

        if self._root_dir:
            self._root_dir.mkdir(parents=True, exist_ok=True)
            self._path = self._root_dir / f'{self._session_id}.jsonl'
            if self._path.exists() and self._path.stat().st_size > 0:
                self._load_from_file()
                return
        self._write({'type': 'header', 'ts': _now(), 'meta': self._header_meta})
        if system_prompt:
            self.append_message('system', system_prompt)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def messages(self) -> List[Message]:
        # Return a shallow copy to avoid accidental mutation
        return list(self._messages)

    @property
    def records(self) -> List[Dict[str, Any]]:
        if self._path is None:
            return list(self._records)
        return self._read_records()

    def append_message(
        self,
        role: Role,
        content: str,
        status: Status = 'complete',
        images: Sequence[str] = (),
    ) -> None:
        rec: Dict[str, Any] = {
            'type': 'message',
            'ts': _now(),
            'role': role,
            'content': content,
            'status': status,
        }
        if images:
            rec['images'] = list(images)
        self._write(rec)
        if status != 'error':
            self._messages.append(Message(role=role, content=content, images=tuple(images)))

    def close(self) -> None:
        # No-op for now. Hook for future rotation or fsync.
        pass

    # Internal helpers

    def _write(self, rec: Dict[str, Any]) -> None:
        if self._path is None:
            self._records.append(rec)
            return
        with self._path.open('a', encoding='utf-8') as f:
            f.write(json.dumps(rec, ensure_ascii=False) + '\n')

    def _read_records(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        with self._path.open('r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    out.append(json.loads(line))
                except ValueError:
                    continue
        return out

    def _load_from_file(self) -> None:
        self._messages = []
        for obj in self._read_records():
            if obj.get('type') != 'message' or obj.get('role') not in ROLES:
                continue
            if obj.get('status') == 'error':
                continue
            self._messages.append(Message(
                role=obj['role'],
                content=obj.get('content', ''),
                images=tuple(obj.get('images') or ()),
            ))
