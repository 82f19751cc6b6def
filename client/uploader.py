"""Recording upload client: splits a media file into chunks and uploads them in parallel."""
import argparse
import os
import random
import sys
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

import requests

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3000")
CHUNK_SIZE = 1024 * 1024  # 1MB
MAX_WORKERS = 4  # Parallel upload threads
MAX_RETRIES = 3


class RecordingUploader:
    """Client for the /upload-chunk and /finalize-recording endpoints."""

    def __init__(
        self,
        api_url: str = API_BASE_URL,
        chunk_size: int = CHUNK_SIZE,
        max_workers: int = MAX_WORKERS,
        max_retries: int = MAX_RETRIES,
        http=None,
    ):
        self.api_url = api_url.rstrip("/")
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self.max_retries = max_retries
        # Anything with requests-style post/get (a requests.Session, or a test client)
        self.http = http or requests.Session()

    def read_chunks(self, file_path: Path) -> list[bytes]:
        chunks = []
        with open(file_path, "rb") as f:
            while True:
                data = f.read(self.chunk_size)
                if not data:
                    break
                chunks.append(data)
        return chunks

    def upload_chunk(self, session_id: str, chunk_index: int, data: bytes) -> int:
        """Upload one chunk, retrying on failure. Returns the server's received count."""
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.http.post(
                    f"{self.api_url}/upload-chunk",
                    data={"sessionId": session_id, "chunkIndex": str(chunk_index)},
                    files={"chunk": (f"chunk_{chunk_index}.webm", data, "video/webm")},
                )
                response.raise_for_status()
                return response.json()["totalChunks"]
            except Exception as e:
                last_error = e
                print(f"✗ Chunk {chunk_index} attempt {attempt}/{self.max_retries} failed: {e}")
                time.sleep(min(0.5 * attempt, 2.0))
        raise RuntimeError(f"Chunk {chunk_index} failed after {self.max_retries} attempts") from last_error

    def finalize(self, session_id: str, total_chunks: int) -> dict:
        print("\nFinalizing recording...")
        response = self.http.post(
            f"{self.api_url}/finalize-recording",
            json={"sessionId": session_id, "totalChunks": total_chunks},
        )
        response.raise_for_status()
        return response.json()

    def upload_file(self, file_path: str, session_id: Optional[str] = None, shuffle: bool = True) -> dict:
        """
        Upload a recording and finalize it.

        Chunks are submitted in shuffled order when ``shuffle`` is set, which
        exercises the server's arrival-order independence.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        session_id = session_id or f"rec_{uuid.uuid4().hex[:12]}"
        chunks = self.read_chunks(file_path)
        if not chunks:
            raise ValueError(f"File is empty: {file_path}")

        order = list(range(len(chunks)))
        if shuffle:
            random.shuffle(order)

        print(f"Uploading {len(chunks)} chunks of {file_path.name} as session {session_id} "
              f"using {self.max_workers} parallel workers...")
        start_time = time.time()

        failed = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self.upload_chunk, session_id, index, chunks[index]): index
                for index in order
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    received = future.result()
                    print(f"  ✓ Chunk {index} uploaded ({received}/{len(chunks)})")
                except RuntimeError as e:
                    print(f"  ✗ {e}")
                    failed.append(index)

        if failed:
            raise RuntimeError(f"Upload incomplete, failed chunks: {sorted(failed)}")

        result = self.finalize(session_id, len(chunks))
        upload_time = max(time.time() - start_time, 1e-6)

        print(f"\n✓ Recording finalized!")
        print(f"  Video: {result['videoPath']}")
        print(f"  Size: {result['size']} bytes")
        print(f"  Time: {upload_time:.2f} seconds")
        return result


def main():
    """CLI for the recording uploader."""
    parser = argparse.ArgumentParser(description="Upload a recording in chunks")
    parser.add_argument("file_path")
    parser.add_argument("--session-id", default=None)
    parser.add_argument("--chunk-size", type=int, default=CHUNK_SIZE)
    parser.add_argument("--workers", type=int, default=MAX_WORKERS)
    parser.add_argument("--api-url", default=API_BASE_URL)
    args = parser.parse_args()

    uploader = RecordingUploader(
        api_url=args.api_url, chunk_size=args.chunk_size, max_workers=args.workers
    )

    try:
        uploader.upload_file(args.file_path, session_id=args.session_id)
    except Exception as e:
        print(f"\n✗ Upload failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
