"""
Streamlit UI for Azure Inventory Graph.

This module provides a web-based viewer that builds the inventory graph from
an uploaded snapshot (or the az CLI) and shows every category, the skipped
records and the diagnostics of the run.
"""

import base64
import json

import streamlit as st

from .azure_client import AzureClient
from .collector import CollectorOptions, SnapshotCollector
from .export import graph_to_dataframes, report_to_dataframes, to_excel_bytes
from .graph_builder import GraphBuilder
from .utils import check_az_installed


def get_download_link(result, filename, file_format="json"):
    """Generate a link to download the built graph as a file."""
    if file_format == "json":
        data = json.dumps(result.to_dict(), indent=2, default=str).encode()
        b64 = base64.b64encode(data).decode()
        href = f'<a href="data:application/json;base64,{b64}" download="{filename}.json">Download JSON File</a>'
    elif file_format == "excel":
        b64 = base64.b64encode(to_excel_bytes(result)).decode()
        href = f'<a href="data:application/vnd.openxmlformats-officedocument.spreadsheetml.sheet;base64,{b64}" download="{filename}.xlsx">Download Excel File</a>'
    else:
        return "Unsupported file format"

    return href


def build_collector(source, uploaded_snapshot, uploaded_previous, options, subscription_id, region):
    previous_graph = None
    if uploaded_previous is not None:
        previous = json.loads(uploaded_previous.getvalue())
        previous_graph = previous.get('graph', previous)

    if source == "Snapshot File":
        snapshot = json.loads(uploaded_snapshot.getvalue())
        collector = SnapshotCollector(snapshot, options=options, previous_graph=previous_graph)
        if subscription_id:
            collector.subscription_id = subscription_id
        if region:
            collector.provider_region = region
        return collector

    return AzureClient(
        subscription_id=subscription_id or None,
        provider_region=region or None,
        options=options,
        previous_graph=previous_graph
    )


def main():
    """Main function for the Streamlit app."""
    st.set_page_config(
        page_title="Azure Inventory Graph",
        page_icon="☁️",
        layout="wide",
    )

    st.title("Azure Inventory Graph")
    st.write("Build a cross-referenced inventory graph of an Azure subscription")

    if 'result' not in st.session_state:
        st.session_state.result = None

    # Sidebar for configuration
    st.sidebar.header("Configuration")

    source = st.sidebar.radio("Source", ["Snapshot File", "Azure CLI"])
    uploaded_snapshot = None
    if source == "Snapshot File":
        uploaded_snapshot = st.sidebar.file_uploader("Upload Snapshot (JSON)", type="json")
    else:
        is_installed, error_message = check_az_installed()
        if not is_installed:
            st.sidebar.error(error_message)

    subscription_id = st.sidebar.text_input("Subscription ID")
    region = st.sidebar.text_input("Region")
    uploaded_previous = st.sidebar.file_uploader("Previous Export (JSON, optional)", type="json")

    st.sidebar.subheader("Options")
    options = CollectorOptions(
        get_private_images=st.sidebar.checkbox("Private VHD Images", value=False),
        get_market_images=st.sidebar.checkbox("Marketplace Images", value=False),
        get_unmanaged_disk_space=st.sidebar.checkbox("Look Up Unmanaged Disk Size", value=False)
    )

    if st.sidebar.button("Build Graph"):
        if source == "Snapshot File" and uploaded_snapshot is None:
            st.error("Please upload a snapshot file")
        else:
            try:
                with st.spinner("Building inventory graph..."):
                    collector = build_collector(source, uploaded_snapshot, uploaded_previous,
                                                options, subscription_id, region)
                    st.session_state.result = GraphBuilder(collector).build()
            except Exception as e:
                st.error(f"Error building inventory graph: {str(e)}")
                st.session_state.result = None

    result = st.session_state.result
    if result is None:
        st.info("Choose a source and build the graph")
        return

    report_frames = report_to_dataframes(result)
    report = result.report

    col1, col2, col3 = st.columns(3)
    col1.metric("Entities", sum(report.counts.values()))
    col2.metric("Skipped Records", len(report.skipped))
    col3.metric("Absent References", report.absent_references)

    summary_tab, skipped_tab, diagnostics_tab, entities_tab = st.tabs(
        ["Summary", "Skipped", "Diagnostics", "Entities"]
    )

    with summary_tab:
        st.dataframe(report_frames['summary'])

    with skipped_tab:
        if report.skipped:
            st.dataframe(report_frames['skipped'])
        else:
            st.success("Every record was built")

    with diagnostics_tab:
        if report.diagnostics:
            st.dataframe(report_frames['diagnostics'])
        else:
            st.success("No diagnostics")

    with entities_tab:
        frames = graph_to_dataframes(result)
        if frames:
            category = st.selectbox("Category", options=list(frames.keys()))
            frame = frames[category]
            st.write(f"{len(frame)} entities")
            st.dataframe(frame)
        else:
            st.warning("The graph is empty")

    st.subheader("Download")
    st.markdown(get_download_link(result, "azure_inventory", "json"), unsafe_allow_html=True)
    st.markdown(get_download_link(result, "azure_inventory", "excel"), unsafe_allow_html=True)


if __name__ == "__main__":
    main()
