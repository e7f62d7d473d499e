import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import streamlit as st

import pandas as pd
import numpy as np
import plotly.graph_objects as go
import plotly.express as px
from dataclasses import replace
from uuid import uuid4

from fintrack.config import load_settings
from fintrack.logging_setup import configure_logging
from fintrack.domain import (
    BILLING_CYCLES,
    EXPENSE,
    INCOME,
    TRANSACTION_TYPES,
    CurrentUser,
    Subscription,
    Transaction,
)
from fintrack.dates import to_date
from fintrack.budgets import FILTER_ALL, FILTER_OVER, FILTER_UNDER
from fintrack.filters import all_of, by_amount_range, by_category, by_date_range, by_description, by_type
from fintrack.functional import compose, pipe
from fintrack.income import income_by_frequency, monthly_equivalent, total_monthly_income
from fintrack.lazy import iter_transactions, lazy_top_categories
from fintrack.reports import unusual_spending
from fintrack.services import FinanceService, SeedStore
from fintrack.subscriptions import monthly_cost, subscription_id, yearly_cost
from fintrack.transforms import expense_transactions, income_transactions, load_seed

settings = load_settings()
configure_logging(settings.log_level)

st.set_page_config(page_title="Finance Tracker", layout="wide")

LEVEL_COLORS = {"ok": "🟢", "warning": "🟡", "over": "🔴"}


class StreamlitNotifier:
    def notify(self, title: str, description: str, variant: str = "default") -> None:
        if variant == "destructive":
            st.error(f"**{title}**: {description}")
        else:
            st.toast(f"{title}: {description}")


def money(x):
    return f"{x:,.2f} {settings.currency}"


st.sidebar.markdown("### 👤 Profile")
nickname = st.sidebar.text_input("Nickname", value=st.session_state.get("nickname", "demo"))
st.session_state["nickname"] = nickname

if "service" not in st.session_state:
    store = SeedStore("demo", load_seed(settings.seed_path))
    st.session_state.service = FinanceService(
        CurrentUser(uid="demo", display_name=nickname),
        store,
        StreamlitNotifier(),
        report_months=settings.report_months,
    ).refresh()

svc: FinanceService = st.session_state.service
if nickname:
    st.sidebar.caption(f"Hello, {nickname}!")


def tx_to_df(tx_list):
    rows = []
    for t in tx_list:
        rows.append({
            "id": t.id,
            "date": pd.to_datetime(to_date(t.date), errors="coerce"),
            "description": t.description,
            "amount": float(t.amount),
            "signed": float(t.amount) if t.type == INCOME else -float(t.amount),
            "category": t.category,
            "type": t.type,
            "notes": t.notes,
        })
    df = pd.DataFrame(rows, columns=["id", "date", "description", "amount", "signed", "category", "type", "notes"])
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    return df


menu = st.sidebar.radio(
    "Menu",
    ["🏠 Overview", "🧾 Transactions", "💰 Budgets", "🔁 Subscriptions", "💵 Income", "📑 Reports"]
)

df = tx_to_df(svc.transactions)

if menu == "🏠 Overview":
    report = svc.report()["result"]
    summary = report["summary"]
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Transactions", len(svc.transactions))
    with k2:
        st.metric("Total Income", money(summary["total_income"]))
    with k3:
        st.metric("Total Expenses", money(summary["total_expenses"]))
    with k4:
        st.metric("Net Savings", money(summary["net_savings"]))

    monthly = pd.DataFrame(report["monthly"])
    fig_ts = go.Figure()
    fig_ts.add_trace(go.Scatter(x=monthly["display_month"], y=monthly["income"], mode="lines+markers", name="Income"))
    fig_ts.add_trace(go.Scatter(x=monthly["display_month"], y=monthly["expenses"], mode="lines+markers", name="Expenses"))
    fig_ts.add_trace(go.Scatter(x=monthly["display_month"], y=monthly["moving_average"], mode="lines", name="Expenses (3-mo avg)", line=dict(dash="dot")))
    fig_ts.update_layout(template="plotly_dark", margin=dict(t=30, b=10, l=10, r=10))
    st.plotly_chart(fig_ts, use_container_width=True)

    reminders = svc.due_reminders(days=settings.due_soon_days)
    if not reminders:
        st.caption(f"No bills due in the next {settings.due_soon_days} days")

    flagged = unusual_spending(svc.transactions)
    if flagged:
        st.subheader("⚠️ Unusual spending")
        st.table(pd.DataFrame(flagged))

    if not df.empty:
        df_top = df.sort_values("amount", ascending=False).head(8)
        disp = df_top[["date", "description", "amount", "category", "type"]].copy()
        disp["date"] = disp["date"].dt.strftime("%Y-%m-%d").fillna("-")
        disp["amount"] = disp["amount"].map(money)
        st.subheader("📊 Top Transactions")
        st.table(disp.reset_index(drop=True))
        st.download_button("⬇ Download CSV", disp.to_csv(index=False), file_name="top_transactions.csv")
    else:
        st.info("No transactions to display.")

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        valid_dates = df["date"].dropna()
        if not valid_dates.empty:
            min_date, max_date = valid_dates.min().date(), valid_dates.max().date()
        else:
            min_date = max_date = pd.Timestamp.today().date()
        date_range = st.date_input("Date Range", value=(min_date, max_date), key="tx_date_range")
    with col2:
        kind = st.selectbox("Type", ["all", *TRANSACTION_TYPES], key="filter_type")
    with col3:
        category = st.selectbox("Category", ["all", *sorted({t.category for t in svc.transactions})], key="filter_category")
    with col4:
        search = st.text_input("Search description")
    max_amount = max([t.amount for t in svc.transactions] or [0.0])
    amount_range = st.slider("Amount", min_value=0.0, max_value=float(max_amount) or 1.0,
                             value=(0.0, float(max_amount) or 1.0), key="filter_amount")

    preds = []
    if len(date_range) == 2:
        preds.append(by_date_range(date_range[0], date_range[1]))
    if kind != "all":
        preds.append(by_type(kind))
    if category != "all":
        preds.append(by_category(category))
    if search:
        preds.append(by_description(search))
    preds.append(by_amount_range(amount_range[0], amount_range[1]))
    select = compose(tuple, lambda ts: filter(all_of(*preds), ts))
    selected = select(svc.transactions)

    filtered_df = tx_to_df(selected)
    if not filtered_df.empty:
        display_df = filtered_df.assign(
            date=lambda x: x["date"].apply(lambda d: d.strftime("%Y-%m-%d") if pd.notna(d) else "N/A"),
            amount=lambda x: x["amount"].map(money),
        )[["id", "date", "description", "amount", "category", "type", "notes"]]
        st.dataframe(display_df, use_container_width=True)
        st.download_button(
            "⬇️ Download Filtered Data",
            filtered_df.to_csv(index=False),
            file_name="transactions_filtered.csv",
            mime="text/csv"
        )
    else:
        st.info("No transactions match the selected filters")

    st.divider()

    st.subheader("➕ Add New Transaction")
    with st.form("input_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            date = st.date_input("Date")
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
            tx_type = st.selectbox("Type", TRANSACTION_TYPES, index=1, key="new_tx_type")
        with col2:
            budget_names = [b.name for b in svc.budgets]
            tx_category = st.selectbox("Category", budget_names + ["Salary", "Other"], key="new_tx_category")
            description = st.text_input("Description")
        notes = st.text_input("Notes (optional)")
        submitted = st.form_submit_button("Add Transaction")

    if submitted:
        new_tx = Transaction(
            id=str(uuid4()),
            date=date,
            description=description,
            amount=float(amount),
            category=tx_category,
            type=tx_type,
            notes=notes or "",
        )
        svc.record_transaction(new_tx)

    st.subheader("✏️ Edit Transaction")
    if svc.transactions:
        by_id = {t.id: t for t in svc.transactions}
        eid = st.selectbox("Transaction to edit", list(by_id), key="edit_tx_id",
                           format_func=lambda i: f"{i} · {by_id[i].description}")
        current = by_id[eid]
        with st.form("edit_form"):
            new_amount = st.number_input("Amount", min_value=0.0, value=float(current.amount), step=1.0, format="%.2f",
                                         key=f"edit_amount_{eid}")
            new_category = st.text_input("Category", value=current.category, key=f"edit_category_{eid}")
            new_description = st.text_input("Description", value=current.description, key=f"edit_description_{eid}")
            edited = st.form_submit_button("Save changes")
        if edited:
            svc.edit_transaction(replace(current, amount=float(new_amount), category=new_category,
                                         description=new_description))

    st.subheader("🗑 Delete Transaction")
    if svc.transactions:
        tid = st.selectbox("Transaction", [t.id for t in svc.transactions],
                           format_func=lambda i: next(f"{t.id} · {t.description} · {money(t.amount)}" for t in svc.transactions if t.id == i))
        if st.button("Delete", key="btn_delete_tx"):
            result = svc.remove_transaction(tid)
            if result.is_left():
                st.error(result.get_error()["message"])
            else:
                st.rerun()

elif menu == "💰 Budgets":
    st.title("💰 Budgets")

    overview = svc.budget_overview()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Budget", money(overview["total_budget"]))
    c2.metric("Total Spent", money(overview["total_spent"]))
    c3.metric("Remaining", money(overview["remaining"]))
    c4.metric("Over / Under", f"{overview['over_count']} / {overview['under_count']}")
    st.progress(overview["percentage"] / 100)

    mode = st.radio("Show", [FILTER_ALL, FILTER_OVER, FILTER_UNDER], horizontal=True)
    statuses = svc.budget_statuses(mode)
    if statuses:
        for s in statuses:
            st.write(f"{LEVEL_COLORS[s.level]} **{s.category}**: {money(s.spent)} / {money(s.budget)}")
            st.progress(s.percentage / 100)
        df_b = pd.DataFrame([{"Category": s.category, "Budget": s.budget, "Spent": s.spent} for s in statuses])
        fig = px.bar(df_b, x="Category", y=["Budget", "Spent"], barmode="group", title="Budget vs Spent", template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("No budgets match this filter")

    if svc.budgets:
        with st.form("budget_form"):
            names = {b.id: b.name for b in svc.budgets}
            bid = st.selectbox("Budget", list(names), format_func=names.get)
            new_limit = st.number_input("New limit", min_value=0.0, step=10.0, format="%.2f")
            if st.form_submit_button("Update limit"):
                if svc.set_budget_amount(bid, float(new_limit)).is_right():
                    st.rerun()

    st.divider()
    st.subheader("Monthly check")
    month = st.text_input("Month (YYYY-MM)", value=pd.Timestamp.today().strftime("%Y-%m"))
    rpt = svc.monthly_budget_report(month)
    for v in rpt["validation"]:
        for msg in v["messages"]:
            st.warning(msg)
    month_rows = [
        {"Category": s.category, "Spent": s.spent, "Budget": s.budget, "Percent": round(s.percentage, 1)}
        for s in rpt["result"].get("budget_statuses", [])
    ]
    if month_rows:
        st.table(pd.DataFrame(month_rows))

elif menu == "🔁 Subscriptions":
    st.title("🔁 Subscriptions")

    subs = svc.subscriptions()
    totals = svc.subscription_totals()
    c1, c2, c3 = st.columns(3)
    c1.metric("Subscriptions", len(subs))
    c2.metric("Monthly cost", money(totals["monthly"]))
    c3.metric("Yearly cost", money(totals["yearly"]))

    if subs:
        sub_df = pd.DataFrame([
            {
                "Name": s.name,
                "Amount": s.amount,
                "Cycle": s.billing_cycle.capitalize(),
                "Next billing": (to_date(s.next_billing_date) or "Not set"),
                "Monthly": round(monthly_cost(s), 2),
                "Yearly": round(yearly_cost(s), 2),
                "Source": s.source,
            }
            for s in subs
        ])
        st.dataframe(sub_df, use_container_width=True)
        fig = px.pie(sub_df, values="Monthly", names="Name", title="Monthly cost share")
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("No subscriptions detected yet. Recurring charges appear here once they repeat.")

    st.subheader("➕ Add Subscription")
    with st.form("subscription_form", clear_on_submit=True):
        name = st.text_input("Name")
        amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
        cycle = st.selectbox("Billing cycle", BILLING_CYCLES, index=1)
        next_date = st.date_input("Next billing date")
        category = st.text_input("Category")
        saved = st.form_submit_button("Save")
    if saved and name:
        svc.save_subscription(Subscription(
            id=subscription_id(name), name=name, amount=float(amount), billing_cycle=cycle,
            next_billing_date=next_date, category=category,
        ))

    manual = [s for s in svc.manual_subscriptions]
    if manual:
        sid = st.selectbox("Remove subscription", [s.id for s in manual],
                           format_func=lambda i: next(s.name for s in manual if s.id == i))
        if st.button("Delete", key="btn_delete_sub"):
            svc.remove_subscription(sid)
            st.rerun()

elif menu == "💵 Income":
    st.title("💵 Income")

    sources = svc.income_sources
    c1, c2 = st.columns(2)
    c1.metric("Monthly income", money(total_monthly_income(sources)))
    c2.metric("Income sources", len(sources))
    if sources:
        st.table(pd.DataFrame([
            {"Name": s.name, "Amount": s.amount, "Frequency": s.frequency.capitalize(),
             "Monthly": round(monthly_equivalent(s), 2), "Notes": s.notes}
            for s in sources
        ]))
        by_freq = income_by_frequency(sources)
        fig = px.pie(values=list(by_freq.values()), names=list(by_freq.keys()), title="Monthly income by frequency")
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("No income sources yet")

    analysis = svc.report()["result"]["income"]
    if analysis["monthly"]:
        inc = pd.DataFrame(analysis["monthly"])
        fig = go.Figure()
        fig.add_trace(go.Bar(x=inc["display_month"], y=inc["total"], name="Income"))
        fig.add_trace(go.Scatter(x=inc["display_month"], y=inc["moving_average"], mode="lines+markers", name="3-month average"))
        fig.update_layout(template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)
        st.caption(f"Average monthly income: {money(analysis['average_monthly_income'])}")
        if analysis["top_source"]:
            st.caption(f"Top source: {analysis['top_source']['name']} ({analysis['top_source']['percentage']}%)")

elif menu == "📑 Reports":
    st.title("📑 Reports")

    today = pd.Timestamp.today()
    default_start = (today - pd.DateOffset(months=settings.report_months - 1)).replace(day=1).date()
    date_range = st.date_input("Report period", value=(default_start, today.date()), key="report_range")
    start, end = (date_range if len(date_range) == 2 else (default_start, today.date()))
    show_steps = st.checkbox("Show intermediate steps", value=False)

    rpt = svc.report(start, end)
    result = rpt["result"]
    summary = result["summary"]
    col1, col2, col3 = st.columns(3)
    col1.metric("Income", money(summary["total_income"]))
    col2.metric("Expenses", money(summary["total_expenses"]))
    col3.metric("Net Savings", money(summary["net_savings"]))

    tab_cat, tab_month, tab_trend = st.tabs(["By category", "Income vs expenses", "Trends"])
    with tab_cat:
        cats = pd.DataFrame(result["categories"])
        if not cats.empty:
            fig = px.pie(cats, values="value", names="name", title="Spending by category", hover_data=["percentage"])
            st.plotly_chart(fig, use_container_width=True)
            st.table(cats[["name", "value", "percentage", "count"]])
            top = result["top_category"]
            st.caption(f"Top category: {top['name']} ({top['percentage']}%)")
        else:
            st.info("No expenses in this period")

        k = st.number_input("Show top-K categories:", min_value=1, max_value=20, value=5)
        top_k = pipe(
            svc.transactions,
            lambda ts: iter_transactions(ts, all_of(by_type(EXPENSE), by_date_range(start, end))),
            lambda ts: lazy_top_categories(ts, int(k)),
            list,
        )
        if top_k:
            st.bar_chart(pd.DataFrame(top_k, columns=["Category", "Amount"]).set_index("Category"))

    with tab_month:
        monthly = pd.DataFrame(result["monthly"])
        fig = go.Figure()
        fig.add_trace(go.Bar(x=monthly["display_month"], y=monthly["income"], name="Income"))
        fig.add_trace(go.Bar(x=monthly["display_month"], y=monthly["expenses"], name="Expenses"))
        fig.add_trace(go.Bar(x=monthly["display_month"], y=monthly["savings"], name="Net Savings"))
        fig.update_layout(template="plotly_dark", barmode="group")
        st.plotly_chart(fig, use_container_width=True)
        savings_rate = np.where(monthly["income"] > 0, monthly["savings"] / monthly["income"].replace(0, np.nan) * 100, 0.0)
        st.caption("Savings rate: " + ", ".join(f"{m}: {r:.0f}%" for m, r in zip(monthly["display_month"], np.nan_to_num(savings_rate))))

    with tab_trend:
        trends = result["trends"]
        t1, t2, t3, t4 = st.columns(4)
        t1.metric("Average expense", money(trends["average_expense"]))
        t2.metric("Largest expense", money(trends["largest_expense"]["amount"]), trends["largest_expense"]["description"])
        t3.metric("Largest income", money(trends["largest_income"]["amount"]), trends["largest_income"]["description"])
        t4.metric("Transactions", trends["count"])
        daily = pd.DataFrame(trends["daily"])
        if not daily.empty:
            fig = px.area(daily, x="date", y="balance", title="Running balance", template="plotly_dark")
            st.plotly_chart(fig, use_container_width=True)
        else:
            st.info("No transaction data available for the selected period.")

    st.caption(f"{len(income_transactions(svc.transactions))} income / {len(expense_transactions(svc.transactions))} expense transactions on file")

    if show_steps:
        with st.expander("Intermediate steps", expanded=False):
            for s in rpt["steps"]:
                st.write(s["aggregator"], s["output"])
