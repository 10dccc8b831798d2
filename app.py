import asyncio
import logging

import streamlit as st

from fuelboard.client import MetricsClient
from fuelboard.errors import TransportError
from fuelboard.filters import ALL_SITES, MONTH_LABELS, FilterStore, is_queryable, month_code, month_label
from fuelboard.overview import compute_overview, load_overview

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fuelboard.app")


@st.cache_resource
def get_client() -> MetricsClient:
    return MetricsClient()


@st.cache_data(ttl=300)
def load_sites():
    return get_client().sites()


# ---------- UI setup ----------
st.set_page_config(page_title="Fuel Site Dashboard", layout="wide")
st.title("Fuel Site Dashboard")

store = FilterStore(st.session_state)
current = store.load()

try:
    sites = load_sites()
except TransportError as exc:
    st.error(f"Could not load sites: {exc}")
    sites = []

site_options = [ALL_SITES] + [str(s.get("id")) for s in sites if s.get("id") is not None]
site_names = {str(s.get("id")): s.get("name") or str(s.get("id")) for s in sites}
site_names[ALL_SITES] = "All sites"

# ----- Sidebar: filters -----
with st.sidebar:
    st.markdown("### Filters")
    site = st.selectbox(
        "Site",
        site_options,
        index=site_options.index(current.site_id) if current.site_id in site_options else 0,
        format_func=lambda sid: site_names.get(sid, sid),
    )
    month_names = st.multiselect(
        "Months",
        list(MONTH_LABELS),
        default=[month_label(m) for m in current.months],
        format_func=str.title,
    )
    years = st.multiselect("Years", list(range(2022, 2027)), default=[y for y in current.years if 2022 <= y <= 2026])
    if st.button("Reset filters"):
        store.clear()
        st.rerun()

selection = store.update(site, [month_code(m) for m in month_names], years)

if not is_queryable(selection):
    st.info("Pick a site, at least one month and at least one year to load the dashboard.")
    st.stop()

payload = compute_overview(selection, asyncio.run(load_overview(get_client(), selection)))

if payload["record"].get("siteName"):
    st.subheader(payload["record"]["siteName"])
for name, message in payload["failed"].items():
    st.warning(f"{name}: {message}")

cols = st.columns(3)
for i, card in enumerate(payload["cards"]):
    cols[i % 3].metric(card["title"], card["formatted"])

if payload["fuel_split"] and payload["fuel_split"]["estimated"]:
    st.caption("Bunkered split is estimated from total fuel sales.")

charts = payload["charts"]
left, right = st.columns(2)
with left:
    if charts.get("distribution"):
        st.vega_lite_chart(charts["distribution"], use_container_width=True)
    else:
        st.info("No sales distribution for this selection.")
with right:
    if charts.get("date_wise"):
        st.vega_lite_chart(charts["date_wise"], use_container_width=True)
    else:
        st.info("No daily sales for this selection.")
