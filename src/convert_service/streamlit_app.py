import os
import time
from typing import Any, Callable

import requests
import streamlit as st

API_BASE = os.getenv("DOC_SERVICE_API_BASE", os.getenv("API_BASE", "http://localhost:3100")).rstrip("/")

TERMINAL_STATUSES = {"completed", "failed"}
# Statuses worth retrying for a short window (propagation, overload, 5xx)
_TRANSIENT = {404, 409, 429}


def _request_with_retry(
    send: Callable[[], requests.Response],
    *,
    max_attempts: int = 5,
    backoff: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[requests.Response | None, str | None]:
    last_text = ""
    for attempt in range(1, max_attempts + 1):
        try:
            resp = send()
        except requests.RequestException as e:
            last_text = str(e)
            if attempt < max_attempts:
                sleep(backoff)
                backoff *= 1.5
                continue
            return None, f"Request failed: {e}"
        last_text = resp.text
        if resp.status_code in (200, 201, 202):
            return resp, None
        if resp.status_code in _TRANSIENT or 500 <= resp.status_code < 600:
            if attempt < max_attempts:
                sleep(backoff)
                backoff *= 1.5
                continue
        return None, f"{resp.status_code} {last_text}"
    return None, f"error after retries: {last_text}"


def fetch_formats(api_base: str = API_BASE) -> tuple[dict[str, list[str]], str | None]:
    try:
        resp = requests.get(f"{api_base}/formats", timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        return {"source": [], "target": []}, f"Failed to load formats: {e}"
    return resp.json().get("formats", {}), None


def upload_file(name: str, content: bytes, mime: str | None, api_base: str = API_BASE) -> tuple[str | None, str | None]:
    """Upload a document; returns the storage-relative path."""
    files = {"file": (name, content, mime or "application/octet-stream")}
    try:
        resp = requests.post(f"{api_base}/upload", files=files, timeout=60)
    except requests.RequestException as e:
        return None, f"Failed to connect to API: {e}"
    if resp.status_code != 201:
        return None, f"Upload failed: {resp.status_code} {resp.text}"
    return str(resp.json()["file"]["path"]), None


def start_conversion(
    source_path: str,
    source_format: str,
    target_format: str,
    source_filename: str | None = None,
    api_base: str = API_BASE,
) -> tuple[str | None, str | None]:
    payload: dict[str, Any] = {
        "sourcePath": source_path,
        "sourceFormat": source_format,
        "targetFormat": target_format,
    }
    if source_filename:
        payload["sourceFilename"] = source_filename
    try:
        resp = requests.post(f"{api_base}/convert", json=payload, timeout=60)
    except requests.RequestException as e:
        return None, f"Failed to connect to API: {e}"
    if resp.status_code not in (200, 202):
        return None, f"Conversion request failed: {resp.status_code} {resp.text}"
    return str(resp.json()["task"]["id"]), None


def poll_task(task_id: str, api_base: str = API_BASE, **retry: Any) -> tuple[dict[str, Any] | None, str | None]:
    resp, err = _request_with_retry(lambda: requests.get(f"{api_base}/tasks/{task_id}", timeout=30), **retry)
    if resp is None:
        return None, f"Status error: {err}"
    return resp.json()["task"], None


def download_result(task_id: str, api_base: str = API_BASE, **retry: Any) -> tuple[bytes | None, str | None]:
    resp, err = _request_with_retry(lambda: requests.get(f"{api_base}/download/{task_id}", timeout=60), **retry)
    if resp is None:
        return None, f"Download error: {err}"
    return resp.content, None


def _reset_state() -> None:
    for key in ["task_id", "task", "result", "result_name", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def main() -> None:
    st.set_page_config(page_title="File Conversion Service", page_icon="📄", layout="centered")
    st.title("📄 File Conversion Service")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    formats, err = fetch_formats()
    if err:
        st.error(err)
        return

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader("Upload a document", key=f"uploader-{st.session_state['upload_key']}")

    col1, col2 = st.columns(2)
    suffix = os.path.splitext(uploaded.name)[1].lstrip(".").lower() if uploaded else ""
    sources = formats.get("source", [])
    with col1:
        source_format = st.selectbox(
            "Source format", sources, index=sources.index(suffix) if suffix in sources else 0
        )
    with col2:
        target_format = st.selectbox("Target format", formats.get("target", []))

    if uploaded and "task_id" not in st.session_state and st.button("Start Conversion", type="primary"):
        with st.spinner("Uploading and creating task..."):
            path, err = upload_file(uploaded.name, uploaded.getvalue(), uploaded.type)
            task_id = None
            if path is not None:
                task_id, err = start_conversion(path, source_format, target_format, uploaded.name)
        if task_id:
            st.session_state["task_id"] = task_id
            st.toast("Task created", icon="✅")
        else:
            st.session_state["error"] = err

    if "task_id" in st.session_state and "task" not in st.session_state:
        task_id = st.session_state["task_id"]
        with st.status("Tracking task status...", expanded=True) as status_box:
            text_slot = st.empty()
            while True:
                task, err = poll_task(task_id)
                if task is None:
                    st.session_state["error"] = err
                    break
                text_slot.write(f"Status: {task['status']}")
                if task["status"] in TERMINAL_STATUSES:
                    st.session_state["task"] = task
                    ok = task["status"] == "completed"
                    status_box.update(label=f"Task {task['status']}", state="complete" if ok else "error")
                    break
                time.sleep(1.5)

        task = st.session_state.get("task")
        if task and task["status"] == "completed":
            with st.spinner("Fetching result..."):
                data, err = download_result(task_id)
            if data is not None:
                st.session_state["result"] = data
                st.session_state["result_name"] = os.path.basename(task.get("outputPath") or "result")
            else:
                st.session_state["error"] = err
        elif task:
            st.session_state["error"] = task.get("error") or "Conversion failed"

    if "result" in st.session_state:
        st.success("Conversion complete!")
        st.download_button(
            label="Download result",
            data=st.session_state["result"],
            file_name=st.session_state["result_name"],
            mime="application/octet-stream",
        )

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
