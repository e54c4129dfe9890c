"""
Streamlit Main App - Entry point with navigation
"""
import os
import sys

import streamlit as st
import requests
from streamlit_folium import st_folium

# route_map / routing live at the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from route_map import MapSession, build_visited_map  # noqa: E402

# Configure page
st.set_page_config(
    page_title="Trip Mapper",
    page_icon="🗺️",
    layout="wide",
    initial_sidebar_state="expanded"
)

# API URL
API_URL = os.getenv("API_URL", "http://localhost:8000")

# Initialize session state
if "user" not in st.session_state:
    st.session_state.user = None
if "token" not in st.session_state:
    st.session_state.token = None
if "current_page" not in st.session_state:
    st.session_state.current_page = "login"
if "map_sessions" not in st.session_state:
    # one MapSession per trip page; owns that page's route resolution
    st.session_state.map_sessions = {}


# ── API helpers ─────────────────────────────────────────────────────────────

def _headers():
    return {"Authorization": f"Bearer {st.session_state.token}"}


def api_get(path, **params):
    return requests.get(f"{API_URL}{path}", headers=_headers(), params=params, timeout=30)


def api_post(path, payload):
    return requests.post(f"{API_URL}{path}", headers=_headers(), json=payload, timeout=30)


def api_put(path, payload):
    return requests.put(f"{API_URL}{path}", headers=_headers(), json=payload, timeout=30)


def api_delete(path):
    return requests.delete(f"{API_URL}{path}", headers=_headers(), timeout=30)


def _error_detail(response):
    try:
        return response.json().get("detail", response.text)
    except ValueError:
        return response.text


def go(page, **state):
    st.session_state.current_page = page
    for key, value in state.items():
        st.session_state[key] = value
    st.rerun()


# Sidebar navigation
def sidebar():
    with st.sidebar:
        st.title("🗺️ Trip Mapper")
        if st.session_state.user:
            st.write(f"Signed in as **{st.session_state.user['name']}**")
            if st.button("🧳 My Trips", use_container_width=True):
                go("dashboard")
            if st.button("➕ New Trip", use_container_width=True):
                go("create_trip")
            if st.button("🌏 Visited Places", use_container_width=True):
                go("visited")
            st.divider()
            if st.button("🚪 Logout", use_container_width=True):
                st.session_state.user = None
                st.session_state.token = None
                for session in st.session_state.map_sessions.values():
                    session.teardown()
                st.session_state.map_sessions = {}
                go("login")


def main():
    sidebar()
    page = st.session_state.current_page
    if not st.session_state.user and page not in ("login", "register"):
        page = "login"

    {
        "login": show_login,
        "register": show_register,
        "dashboard": show_dashboard,
        "create_trip": show_create_trip,
        "trip": show_trip,
        "visited": show_visited,
    }.get(page, show_dashboard)()


def _auth_form(endpoint, fields, submit_label):
    with st.form(endpoint):
        values = {name: st.text_input(label, type="password" if name == "password" else "default")
                  for name, label in fields}
        if st.form_submit_button(submit_label, use_container_width=True):
            try:
                resp = requests.post(f"{API_URL}/auth/{endpoint}", json=values, timeout=30)
            except requests.RequestException as e:
                st.error(f"Could not reach the API: {e}")
                return
            if resp.status_code == 200:
                data = resp.json()
                st.session_state.user = data["user"]
                st.session_state.token = data["access_token"]
                go("dashboard")
            else:
                st.error(_error_detail(resp))


def show_login():
    st.header("Welcome back")
    _auth_form("login", [("email", "Email"), ("password", "Password")], "Login")
    if st.button("Create an account"):
        go("register")


def show_register():
    st.header("Create an account")
    _auth_form("register", [("name", "Name"), ("email", "Email"), ("password", "Password")], "Register")
    if st.button("I already have an account"):
        go("login")


def show_dashboard():
    st.header("🧳 My Trips")
    resp = api_get("/trips")
    if resp.status_code != 200:
        st.error(_error_detail(resp))
        return

    trips = resp.json()
    if not trips:
        st.info("No trips yet. Create one from the sidebar.")
        return

    for trip in trips:
        with st.container(border=True):
            col1, col2 = st.columns([4, 1])
            with col1:
                st.subheader(trip["name"])
                st.caption(f"{trip['start_date']} → {trip['end_date']} · {trip['location_count']} location(s)")
                if trip.get("description"):
                    st.write(trip["description"])
            with col2:
                if st.button("Open", key=f"open_{trip['id']}", use_container_width=True):
                    go("trip", current_trip_id=trip["id"])


def show_create_trip():
    st.header("➕ New Trip")
    with st.form("create_trip"):
        name = st.text_input("Trip name")
        description = st.text_area("Description")
        col1, col2 = st.columns(2)
        start = col1.date_input("Start date")
        end = col2.date_input("End date")
        if st.form_submit_button("Create trip", use_container_width=True):
            resp = api_post("/trips", {
                "name": name,
                "description": description,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
            })
            if resp.status_code == 200:
                go("trip", current_trip_id=resp.json()["id"])
            else:
                st.error(_error_detail(resp))


# ── Trip page ───────────────────────────────────────────────────────────────

def _map_session(trip_id):
    sessions = st.session_state.map_sessions
    if trip_id not in sessions:
        sessions[trip_id] = MapSession()
    return sessions[trip_id]


def _add_location_panel(trip_id):
    st.subheader("📍 Add a location")
    query = st.text_input("Search for a place", key=f"search_{trip_id}")
    if len(query.strip()) < 3:
        st.caption("Type at least 3 characters to search.")
        return

    resp = api_get("/locations/suggestions", q=query)
    suggestions = resp.json().get("suggestions", []) if resp.status_code == 200 else []
    if not suggestions:
        st.caption("No matches found.")
        return

    labels = [s["display_name"] for s in suggestions]
    choice = st.selectbox("Matches", range(len(labels)), format_func=lambda i: labels[i],
                          key=f"choice_{trip_id}")
    picked = suggestions[choice]
    name = st.text_input("Name", value=picked["display_name"].split(",")[0], key=f"name_{trip_id}")
    if st.button("Add to trip", key=f"add_{trip_id}"):
        resp = api_post(f"/trips/{trip_id}/locations", {
            "name": name,
            "lat": float(picked["lat"]),
            "lng": float(picked["lon"]),
        })
        if resp.status_code == 200:
            _map_session(trip_id).teardown()
            st.rerun()
        else:
            st.error(_error_detail(resp))


def _route_panel(trip_id, locations):
    session = _map_session(trip_id)
    records = [
        {"id": loc["id"], "name": loc["title"], "latitude": loc["latitude"],
         "longitude": loc["longitude"], "description": loc.get("description")}
        for loc in locations
    ]
    # new location set -> tear down and resolve again
    if session.records != records or (session.resolution is None and session.error is None):
        with st.spinner("Calculating route..." if len(records) > 1 else "Loading map..."):
            session.show(records)

    if session.error:
        st.error(f"⚠️ {session.error}")
        if st.button("🔄 Retry", key=f"retry_{trip_id}"):
            with st.spinner("Calculating route..."):
                session.retry()
            st.rerun()
        return

    if session.map is None:
        st.info("No locations added to this trip yet.")
        return

    summary = session.summary
    if summary:
        col1, col2 = st.columns(2)
        col1.metric("🛣️ Distance", summary.distance)
        col2.metric("⏱️ Time", summary.duration)
        if summary.approximate:
            st.warning("⚠️ Road routing unavailable: showing straight lines between stops.")

    st_folium(session.map, height=480, use_container_width=True,
              key=f"route_map_{trip_id}", returned_objects=[])

    if summary and summary.steps:
        with st.expander("📋 Turn-by-Turn Navigation"):
            for step in summary.steps:
                details = " · ".join(part for part in (step.distance, step.duration) if part)
                st.markdown(f"{step.icon} **{step.index}.** {step.instruction}"
                            + (f"  \n<small>{details}</small>" if details else ""),
                            unsafe_allow_html=True)


def _edit_location_form(loc):
    with st.form(f"edit_{loc['id']}"):
        title = st.text_input("Name", value=loc["title"], key=f"edit_title_{loc['id']}")
        col1, col2 = st.columns(2)
        latitude = col1.number_input("Latitude", value=float(loc["latitude"]), min_value=-90.0,
                                     max_value=90.0, format="%.6f", key=f"edit_lat_{loc['id']}")
        longitude = col2.number_input("Longitude", value=float(loc["longitude"]), min_value=-180.0,
                                      max_value=180.0, format="%.6f", key=f"edit_lng_{loc['id']}")
        description = st.text_area("Description", value=loc.get("description") or "",
                                   key=f"edit_desc_{loc['id']}")
        if st.form_submit_button("Save"):
            resp = api_put(f"/locations/{loc['id']}", {
                "title": title,
                "latitude": latitude,
                "longitude": longitude,
                "description": description,
            })
            if resp.status_code == 200:
                st.rerun()
            else:
                st.error(_error_detail(resp))


def show_trip():
    trip_id = st.session_state.get("current_trip_id")
    resp = api_get(f"/trips/{trip_id}")
    if resp.status_code != 200:
        st.error(_error_detail(resp))
        return

    trip = resp.json()
    st.header(trip["name"])
    st.caption(f"{trip['start_date']} → {trip['end_date']}")
    if trip.get("description"):
        st.write(trip["description"])

    left, right = st.columns([2, 1])
    with left:
        _route_panel(trip_id, trip["locations"])
    with right:
        st.subheader("🧭 Stops")
        for loc in trip["locations"]:
            col1, col2 = st.columns([5, 1])
            col1.write(f"**{loc['order'] + 1}.** {loc['title']}")
            if col2.button("🗑", key=f"del_{loc['id']}"):
                resp = api_delete(f"/locations/{loc['id']}")
                if resp.status_code == 200:
                    st.rerun()
                else:
                    st.error(_error_detail(resp))
            with st.expander(f"✏️ Edit {loc['title']}"):
                _edit_location_form(loc)
        st.divider()
        _add_location_panel(trip_id)


def show_visited():
    st.header("🌏 Visited Places")
    resp = api_get("/visited")
    if resp.status_code != 200:
        st.error(_error_detail(resp))
        return

    visited = resp.json()
    col1, col2 = st.columns(2)
    col1.metric("Locations", visited["total_locations"])
    col2.metric("Trips", visited["total_trips"])
    st_folium(build_visited_map(visited["data"]), height=520, use_container_width=True,
              key="visited_map", returned_objects=[])


if __name__ == "__main__":
    main()
