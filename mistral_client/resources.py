"""
Endpoint wrappers for the Mistral API.

Each wrapper only assembles the path, body and query for one endpoint and
delegates to the client core; responses come back as plain decoded JSON inside
a Result. Streaming endpoints offer a pull iterator and a push (callback)
variant.
"""

import asyncio
import logging
import mimetypes
import os
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Union

from .request_builder import FilePart, MultipartBody
from .response import Result
from .stream import StreamEvent


logger = logging.getLogger(__name__)


DEFAULT_CHAT_MODEL = "mistral-large-latest"
DEFAULT_FIM_MODEL = "codestral-latest"
DEFAULT_EMBEDDING_MODEL = "mistral-embed"


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


def _require(value: Any, name: str) -> None:
    if value is None or value == "" or value == []:
        raise ValueError(f"{name} is required")


class Resource:
    """Base class binding an endpoint group to a client."""

    def __init__(self, client):
        self._client = client


class Chat(Resource):
    """Chat completions (``/v1/chat/completions``)."""

    PATH = "/chat/completions"

    def _body(self, messages: Sequence[Dict[str, Any]], model: Optional[str], stream: bool, options: Dict) -> Dict:
        _require(messages, "messages")
        body = {"model": model or DEFAULT_CHAT_MODEL, "messages": list(messages)}
        body.update(_compact(options))
        body["stream"] = stream
        return body

    async def complete(
        self,
        messages: Sequence[Dict[str, Any]],
        model: Optional[str] = None,
        **options: Any
    ) -> Result:
        """Create a chat completion."""
        return await self._client.request("POST", self.PATH, json=self._body(messages, model, False, options))

    async def stream(
        self,
        messages: Sequence[Dict[str, Any]],
        model: Optional[str] = None,
        **options: Any
    ) -> AsyncIterator[StreamEvent]:
        """Stream completion chunks as they are generated."""
        body = self._body(messages, model, True, options)
        async for event in self._client.stream("POST", self.PATH, json=body):
            yield event

    async def stream_to(
        self,
        messages: Sequence[Dict[str, Any]],
        callback: Callable[[StreamEvent], Any],
        model: Optional[str] = None,
        **options: Any
    ) -> Result:
        """Stream completion chunks into ``callback``; returns the event count."""
        body = self._body(messages, model, True, options)
        return await self._client.stream_request("POST", self.PATH, callback, json=body)


class Agents(Resource):
    """Agent completions (``/v1/agents/completions``)."""

    PATH = "/agents/completions"

    def _body(self, agent_id: str, messages: Sequence[Dict[str, Any]], stream: bool, options: Dict) -> Dict:
        _require(agent_id, "agent_id")
        _require(messages, "messages")
        body = {"agent_id": agent_id, "messages": list(messages)}
        body.update(_compact(options))
        body["stream"] = stream
        return body

    async def complete(self, agent_id: str, messages: Sequence[Dict[str, Any]], **options: Any) -> Result:
        """Create a completion with a configured agent."""
        return await self._client.request("POST", self.PATH, json=self._body(agent_id, messages, False, options))

    async def stream(
        self,
        agent_id: str,
        messages: Sequence[Dict[str, Any]],
        **options: Any
    ) -> AsyncIterator[StreamEvent]:
        body = self._body(agent_id, messages, True, options)
        async for event in self._client.stream("POST", self.PATH, json=body):
            yield event

    async def stream_to(
        self,
        agent_id: str,
        messages: Sequence[Dict[str, Any]],
        callback: Callable[[StreamEvent], Any],
        **options: Any
    ) -> Result:
        """Stream agent completion chunks into ``callback``; returns the event count."""
        body = self._body(agent_id, messages, True, options)
        return await self._client.stream_request("POST", self.PATH, callback, json=body)


class FIM(Resource):
    """Fill-in-the-middle code completions (``/v1/fim/completions``)."""

    PATH = "/fim/completions"

    async def complete(
        self,
        prompt: str,
        suffix: Optional[str] = None,
        model: Optional[str] = None,
        **options: Any
    ) -> Result:
        _require(prompt, "prompt")
        body = {"model": model or DEFAULT_FIM_MODEL, "prompt": prompt}
        body.update(_compact({"suffix": suffix, **options}))
        return await self._client.request("POST", self.PATH, json=body)


class Embeddings(Resource):
    """Embeddings (``/v1/embeddings``)."""

    async def create(
        self,
        inputs: Union[str, Sequence[str]],
        model: Optional[str] = None,
        **options: Any
    ) -> Result:
        _require(inputs, "inputs")
        if isinstance(inputs, str):
            inputs = [inputs]
        body = {"model": model or DEFAULT_EMBEDDING_MODEL, "input": list(inputs)}
        body.update(_compact(options))
        return await self._client.request("POST", "/embeddings", json=body)


class Models(Resource):
    """Model listing and management (``/v1/models``)."""

    async def list(self) -> Result:
        return await self._client.request("GET", "/models")

    async def retrieve(self, model_id: str) -> Result:
        _require(model_id, "model_id")
        return await self._client.request("GET", f"/models/{model_id}")

    async def delete(self, model_id: str) -> Result:
        _require(model_id, "model_id")
        return await self._client.request("DELETE", f"/models/{model_id}")


class Files(Resource):
    """
    File storage (``/v1/files``).

    Listing filters ``sample_type`` and ``source`` accept lists and are sent
    as repeated query keys.
    """

    PATH = "/files"

    async def upload(
        self,
        file: Union[str, os.PathLike, bytes],
        purpose: str = "fine-tune",
        filename: Optional[str] = None,
    ) -> Result:
        """
        Upload a file as ``multipart/form-data``.

        Args:
            file: Path to a file (read in a worker thread), or the raw file content
            purpose: File purpose ("fine-tune", "batch", "ocr")
            filename: Name sent with the upload (basename of the path by default)

        Returns:
            Result with the uploaded file object
        """
        _require(purpose, "purpose")
        if isinstance(file, (bytes, bytearray)):
            _require(filename, "filename")
            content = bytes(file)
        else:
            path = Path(file)
            content = await asyncio.to_thread(path.read_bytes)
            filename = filename or path.name

        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        body = MultipartBody(
            fields=(("purpose", purpose),),
            file=FilePart(filename=filename, content=content, content_type=content_type),
        )
        logger.info(f"Uploading {filename} ({len(content)} bytes) for {purpose}")
        return await self._client.request("POST", self.PATH, multipart=body)

    async def list(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        purpose: Optional[str] = None,
        sample_type: Optional[List[str]] = None,
        source: Optional[List[str]] = None,
        search: Optional[str] = None,
    ) -> Result:
        query = {
            "page": page,
            "page_size": page_size,
            "purpose": purpose,
            "sample_type": sample_type,
            "source": source,
            "search": search,
        }
        return await self._client.request("GET", self.PATH, query=query)

    async def retrieve(self, file_id: str) -> Result:
        _require(file_id, "file_id")
        return await self._client.request("GET", f"{self.PATH}/{file_id}")

    async def delete(self, file_id: str) -> Result:
        _require(file_id, "file_id")
        return await self._client.request("DELETE", f"{self.PATH}/{file_id}")


class Batch(Resource):
    """
    Batch jobs (``/v1/batch/jobs``).

    The ``status`` filter accepts a list and is sent comma-joined.
    """

    PATH = "/batch/jobs"

    async def list_jobs(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        model: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        created_after: Optional[datetime] = None,
        created_by_me: Optional[bool] = None,
        status: Optional[List[str]] = None,
    ) -> Result:
        query = {
            "page": page,
            "page_size": page_size,
            "model": model,
            "metadata": metadata,
            "created_after": created_after,
            "created_by_me": created_by_me,
            "status": status,
        }
        return await self._client.request("GET", self.PATH, query=query)

    async def create_job(
        self,
        input_files: Sequence[str],
        endpoint: str,
        model: str,
        metadata: Optional[Dict[str, Any]] = None,
        timeout_hours: int = 24,
    ) -> Result:
        _require(input_files, "input_files")
        _require(endpoint, "endpoint")
        _require(model, "model")
        body = _compact({
            "input_files": list(input_files),
            "endpoint": endpoint,
            "model": model,
            "metadata": metadata,
            "timeout_hours": timeout_hours,
        })
        return await self._client.request("POST", self.PATH, json=body)

    async def get_job(self, job_id: str) -> Result:
        _require(job_id, "job_id")
        return await self._client.request("GET", f"{self.PATH}/{job_id}")

    async def cancel_job(self, job_id: str) -> Result:
        _require(job_id, "job_id")
        return await self._client.request("POST", f"{self.PATH}/{job_id}/cancel")


class FineTuning(Resource):
    """Fine-tuning jobs (``/v1/fine_tuning/jobs``)."""

    PATH = "/fine_tuning/jobs"

    async def list_jobs(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        model: Optional[str] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        created_by_me: Optional[bool] = None,
        status: Optional[str] = None,
        wandb_project: Optional[str] = None,
        wandb_name: Optional[str] = None,
        suffix: Optional[str] = None,
    ) -> Result:
        query = {
            "page": page,
            "page_size": page_size,
            "model": model,
            "created_after": created_after,
            "created_before": created_before,
            "created_by_me": created_by_me,
            "status": status.upper() if isinstance(status, str) else status,
            "wandb_project": wandb_project,
            "wandb_name": wandb_name,
            "suffix": suffix,
        }
        return await self._client.request("GET", self.PATH, query=query)

    async def get_job(self, job_id: str) -> Result:
        _require(job_id, "job_id")
        return await self._client.request("GET", f"{self.PATH}/{job_id}")

    async def cancel_job(self, job_id: str) -> Result:
        _require(job_id, "job_id")
        return await self._client.request("POST", f"{self.PATH}/{job_id}/cancel")


class Conversations(Resource):
    """Agent conversations (``/v1/conversations``), streamed as typed events."""

    PATH = "/conversations"

    async def start(self, inputs: Union[str, List[Dict[str, Any]]], **options: Any) -> Result:
        _require(inputs, "inputs")
        body = {"inputs": inputs, **_compact(options), "stream": False}
        return await self._client.request("POST", self.PATH, json=body)

    async def start_stream(self, inputs: Union[str, List[Dict[str, Any]]], **options: Any) -> AsyncIterator[StreamEvent]:
        _require(inputs, "inputs")
        body = {"inputs": inputs, **_compact(options), "stream": True}
        async for event in self._client.stream("POST", self.PATH, json=body):
            yield event

    async def append_stream(
        self,
        conversation_id: str,
        inputs: Union[str, List[Dict[str, Any]]],
        **options: Any
    ) -> AsyncIterator[StreamEvent]:
        _require(conversation_id, "conversation_id")
        _require(inputs, "inputs")
        body = {"inputs": inputs, **_compact(options), "stream": True}
        async for event in self._client.stream("POST", f"{self.PATH}/{conversation_id}", json=body):
            yield event
