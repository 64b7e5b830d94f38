import io
import os
import zipfile

import requests
import streamlit as st

API_BASE = os.getenv("RASTER_SERVICE_API_BASE", os.getenv("API_BASE", "http://localhost:8081")).rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("RASTER_SERVICE_UI_TIMEOUT", "600"))

FORMATS = ["JPEG", "PNG", "TIFF"]
LAYOUTS = ["KEEP", "LANDSCAPE", "PORTRAIT"]


def _reset_state():
    for key in ["archive", "entries", "error", "source_name"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear any previously uploaded file widget state
    if "upload_key" in st.session_state:
        st.session_state["upload_key"] += 1
    else:
        st.session_state["upload_key"] = 1


def _error_message(resp: requests.Response) -> str:
    try:
        return str(resp.json().get("error", resp.text))
    except ValueError:
        return resp.text


def _convert(data: bytes, params: dict[str, str], *, session: requests.Session | None = None) -> tuple[bytes | None, str | None]:
    """POST the document to /convert; returns (archive, None) or (None, error)."""
    http = session or requests
    try:
        resp = http.post(
            f"{API_BASE}/convert",
            params=params,
            data=data,
            headers={"Content-Type": "application/octet-stream"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        return None, f"Failed to connect to API: {e}"
    if resp.status_code != 200:
        return None, f"Conversion failed: {resp.status_code} {_error_message(resp)}"
    return resp.content, None


def _list_entries(archive: bytes) -> list[tuple[str, int]]:
    """Names and uncompressed sizes of the archive's page entries, in order."""
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return [(info.filename, info.file_size) for info in zf.infolist()]


def _archive_name(source_name: str) -> str:
    base = source_name.rsplit(".", 1)[0] if "." in source_name else source_name
    return f"{base or 'pages'}.zip"


def main() -> None:
    st.set_page_config(page_title="Raster Conversion Service", page_icon="🖼️", layout="centered")
    st.title("🖼️ Raster Conversion Service")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload a document (PDF, multi-page TIFF, PNG, ...)",
        type=["pdf", "tif", "tiff", "png", "jpg", "jpeg", "gif"],
        key=f"uploader-{st.session_state['upload_key']}",
    )

    col1, col2 = st.columns(2)
    with col1:
        density = st.number_input("Density (DPI)", min_value=1.0, max_value=1200.0, value=300.0, step=25.0)
        fmt = st.selectbox("Format", FORMATS, index=0)
    with col2:
        quality = st.slider("Quality", min_value=0, max_value=100, value=85)
        layout = st.selectbox("Layout", LAYOUTS, index=0)

    if uploaded and st.button("Convert", type="primary"):
        params = {"density": str(density), "quality": str(quality), "format": fmt, "layout": layout}
        with st.spinner("Rasterizing pages..."):
            archive, error = _convert(uploaded.getvalue(), params)
        if archive is not None:
            st.session_state["archive"] = archive
            st.session_state["entries"] = _list_entries(archive)
            st.session_state["source_name"] = uploaded.name
            st.session_state.pop("error", None)
        else:
            st.session_state["error"] = error

    if "archive" in st.session_state:
        entries = st.session_state["entries"]
        st.success(f"Converted {len(entries)} page(s)")
        st.download_button(
            label="Download Zip archive",
            data=st.session_state["archive"],
            file_name=_archive_name(st.session_state.get("source_name", "")),
            mime="application/zip",
        )
        with st.expander("Pages"):
            st.table([{"entry": name, "bytes": size} for name, size in entries])

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
