"""Coin Idle (Streamlit)

Principles:
- UI only renders + triggers.
- Core domain and engine are pure Python modules; the app is the only
  place that reads the wall clock.
- Accrual is derived from timestamps, so the rerun cadence only affects how
  smooth the counter looks, never how much is earned.
- One GameSession per server process (st.cache_resource): every tab drives
  the same state owner, so autosaves never race each other on the save file.
  Only UI flags (messages, confirmations) live in per-tab session_state.

Entry point: streamlit run app.py
"""

from __future__ import annotations

import time

import streamlit as st

from engine.config import EngineConfig, save_path_from_env
from engine.machine import Transition
from engine.persistence import JsonFileStore
from engine.report import StateView, format_compact, format_duration, format_number
from engine.session import GameSession

APP_TITLE = "Coin Idle"
APP_VERSION = "1.0.0"
REFRESH_SECONDS = 1.0

st.set_page_config(page_title=APP_TITLE, page_icon="🪙", layout="wide", initial_sidebar_state="expanded")


# =========================
# Session State
# =========================


@st.cache_resource
def shared_session() -> GameSession:
    session = GameSession(store=JsonFileStore(save_path_from_env()), config=EngineConfig(), now=time.time())
    session.start(time.time())
    return session


def _ensure_state() -> None:
    ss = st.session_state
    if "last_message" not in ss:
        ss.last_message = ""
    if "confirm_prestige" not in ss:
        ss.confirm_prestige = False


def _session() -> GameSession:
    return shared_session()


def _report(t: Transition, success: str = "") -> None:
    ss = st.session_state
    if t.ok:
        ss.last_message = success
    else:
        ss.last_message = t.rejection.message if t.rejection else ""


# =========================
# UI Pages
# =========================


def _on_click() -> None:
    _session().manual_action()


def _on_buy(upgrade_id: int, quantity) -> None:
    _report(_session().purchase(upgrade_id, quantity))


def _on_prestige() -> None:
    ss = st.session_state
    if not ss.confirm_prestige:
        ss.confirm_prestige = True
        return
    ss.confirm_prestige = False
    t = _session().prestige()
    _report(t, success=f"Prestiged! Prestige points: {t.state.prestige_points}")


def render_offline_report() -> None:
    report = _session().offline_report
    if report is None:
        return
    st.info(
        f"Welcome back! You earned ${format_number(report.earnings)} "
        f"while away ({format_duration(report.elapsed_seconds)})."
    )
    if st.button("Dismiss"):
        _session().offline_report = None
        st.rerun()


def render_upgrades(view: StateView) -> None:
    st.subheader("Upgrades")
    for u in view.upgrades:
        cols = st.columns([3, 2, 2, 2])
        cols[0].markdown(f"**{u.name}** ({u.level})  \n{u.effect_label}")
        cols[1].button(
            f"Buy: ${format_number(u.next_cost)}",
            key=f"buy1-{u.id}",
            disabled=not u.affordable,
            on_click=_on_buy,
            args=(u.id, 1),
            use_container_width=True,
        )
        cols[2].button(
            f"Max ({u.max_quantity})",
            key=f"buymax-{u.id}",
            disabled=u.max_quantity <= 0,
            on_click=_on_buy,
            args=(u.id, "max"),
            use_container_width=True,
        )
        cols[3].caption(f"${format_number(u.max_cost)} for {u.max_quantity}")


def render_prestige(view: StateView) -> None:
    st.subheader("Prestige")
    st.caption(
        f"Reset currency and upgrades for permanent bonuses. "
        f"Requires ${format_compact(view.prestige_threshold)}."
    )
    st.markdown(
        f"Points: **{view.prestige_points}** · production x{view.production_multiplier:.3f} · "
        f"clicks x{view.manual_multiplier:.3f}"
    )
    label = f"Prestige (+{view.prestige_gain_preview} points)"
    if st.session_state.confirm_prestige:
        label = f"Confirm prestige: +{view.prestige_gain_preview} points"
    st.button(label, disabled=not view.can_prestige, on_click=_on_prestige)


def render_stats(view: StateView) -> None:
    st.subheader("Statistics")
    rows = {
        "Time Played": format_duration(view.time_played_seconds),
        "Total Clicks": format_compact(view.total_clicks),
        "Manual Earnings": f"${format_compact(view.manual_earnings)}",
        "Total Earnings (All Time)": f"${format_compact(view.total_earnings)}",
        "Highest Coins Held": f"${format_compact(view.highest_currency_ever_held)}",
        "Prestiges": str(view.prestige_count),
    }
    for k, v in rows.items():
        st.markdown(f"{k}: **{v}**")


@st.fragment(run_every=REFRESH_SECONDS)
def page_game() -> None:
    session = _session()
    now = time.time()
    session.pump(now)
    view = session.view(now)

    st.title(f"${format_number(view.currency)}")
    st.caption(f"per second: ${format_number(view.production_rate)}")
    st.button(f"Click (+{format_number(view.click_value)})", on_click=_on_click, type="primary")

    msg = st.session_state.get("last_message") or ""
    if msg:
        st.warning(msg)

    left, right = st.columns([3, 2])
    with left:
        render_upgrades(view)
    with right:
        render_prestige(view)
        render_stats(view)


# =========================
# Sidebar
# =========================


def sidebar() -> None:
    session = _session()
    st.sidebar.markdown(f"**{APP_TITLE}**  ")
    st.sidebar.markdown(f"v{APP_VERSION}")

    if session.load_problem:
        st.sidebar.warning(f"Save file was unreadable and has been reset: {session.load_problem}")

    st.sidebar.markdown("---")
    if st.sidebar.button("Save now", use_container_width=True):
        session.autosave(time.time())
        st.sidebar.success("Saved.")

    st.sidebar.download_button(
        "Export session",
        data=session.export().encode("utf-8"),
        file_name="coin_idle_session.json",
        mime="application/json",
    )

    st.sidebar.markdown("---")
    confirm = st.sidebar.checkbox("I really want to erase everything")
    if st.sidebar.button("Reset Game", disabled=not confirm, use_container_width=True):
        session.reset_all(now=time.time())
        st.session_state.last_message = "Game reset."
        st.rerun()


# =========================
# Main
# =========================


def main() -> None:
    _ensure_state()
    sidebar()
    render_offline_report()
    page_game()


if __name__ == "__main__":
    main()
