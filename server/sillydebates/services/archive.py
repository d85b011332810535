"""Knowledge-base archival of closed debates to S3-compatible storage
(DigitalOcean Spaces).

Each closed debate becomes ``debates/day-NN.json`` plus a plain-text rendition
``debates/day-NN.txt``, which the chatbot's knowledge base indexes. boto3 is
synchronous, so uploads run on a worker thread.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

import boto3

logger = logging.getLogger(__name__)


@dataclass
class ArchivedEntry:
    user_name: str
    entry: str
    votes: int


@dataclass
class DebateArchive:
    id: int
    day_number: int
    date: str
    topic: str
    total_entries: int
    total_votes: int
    winner: Optional[ArchivedEntry]
    runner_up: Optional[ArchivedEntry]
    commentary: Optional[str]
    top_entries: list[ArchivedEntry] = field(default_factory=list)

    def object_key(self, extension: str) -> str:
        return f"debates/day-{self.day_number:02d}.{extension}"

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    def to_text(self) -> str:
        winner = self.winner
        lines = [
            f"Silly Debates - Day {self.day_number}",
            f"Date: {self.date}",
            f'Topic: "{self.topic}"',
            "",
            "Results:",
            f"- Total Entries: {self.total_entries}",
            f"- Total Votes: {self.total_votes}",
            "",
            f"Winner: {winner.user_name if winner else 'No winner'}",
            f'Winning Entry: "{winner.entry if winner else "N/A"}"',
            f"Winning Votes: {winner.votes if winner else 0}",
        ]
        if self.runner_up:
            lines += [
                "",
                f"Runner Up: {self.runner_up.user_name}",
                f'Runner Up Entry: "{self.runner_up.entry}"',
                f"Runner Up Votes: {self.runner_up.votes}",
            ]
        if self.commentary:
            lines += ["", f'AI Commentary: "{self.commentary}"']
        lines += ["", "Top Entries:"]
        lines += [
            f'{i}. {e.user_name}: "{e.entry}" ({e.votes} votes)'
            for i, e in enumerate(self.top_entries, start=1)
        ]
        return "\n".join(lines)


class SpacesArchive:
    def __init__(
        self,
        key: str,
        secret: str,
        bucket: str,
        region: str,
        client=None,
    ):
        self.bucket = bucket
        self.configured = bool(key and secret) or client is not None
        self.client = client
        if self.client is None and self.configured:
            self.client = boto3.client(
                "s3",
                endpoint_url=f"https://{region}.digitaloceanspaces.com",
                region_name=region,
                aws_access_key_id=key,
                aws_secret_access_key=secret,
            )

    def _put(self, key: str, body: str, content_type: str):
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType=content_type,
            ACL="private",
        )

    async def export(self, archive: DebateArchive) -> bool:
        """Upload both renditions. Returns False when storage is not configured."""
        if not self.configured:
            logger.warning("Spaces not configured, skipping knowledge base export")
            return False
        await asyncio.gather(
            asyncio.to_thread(
                self._put, archive.object_key("json"), archive.to_json(), "application/json"
            ),
            asyncio.to_thread(
                self._put, archive.object_key("txt"), archive.to_text(), "text/plain"
            ),
        )
        logger.info(f"Synced debate day {archive.day_number} to knowledge base")
        return True
