"""
Distributor Dashboard

Analytics backend for turning a laptop distributor's spreadsheet exports
(purchase orders, sell-out, serialization, rebate programs and the task
board) into dashboard-ready KPIs, chart series and tables.

To swap the CSV exports for a live feed:
    Replace the load_* functions in distributor_dashboard.loaders with
    reads from the new source and hand the raw frames to the matching
    parse_* function. Every table downstream keeps its schema.

To connect a front end:
    Call the get_* functions in distributor_dashboard.dashboard with the
    parsed tables and the page's filter state (a plain dict). Each returns
    a plain dict of KPIs, series and records.

To add new KPI cards:
    Add an entry to config.KPI_REGISTRY mapping the KPI key to its label
    and display format, then ensure the matching *_kpis function emits it.
"""
