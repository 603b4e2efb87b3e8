#!/usr/bin/env python3
"""
Streamlit app launcher for Azure Inventory Graph.

This script launches the Streamlit UI for Azure Inventory Graph.
"""

from azure_inventory_graph.streamlit_app import main

if __name__ == "__main__":
    main()
