from typing import Any, Dict

from ..db import get_db_connection, transaction


def get_metrics() -> Dict[str, Any]:
    with get_db_connection() as conn, transaction(conn, write=False):
        # Global stats
        total_companies = conn.execute(
            "SELECT COUNT(*) FROM (SELECT principal FROM balances UNION SELECT owner FROM credits)"
        ).fetchone()[0]
        outstanding_emissions = conn.execute("SELECT COALESCE(SUM(emissions), 0) FROM balances").fetchone()[0]
        total_credits = conn.execute("SELECT COUNT(*) FROM credits").fetchone()[0]
        active_credits = conn.execute("SELECT COUNT(*) FROM credits WHERE active = 1").fetchone()[0]
        active_tons = conn.execute("SELECT COALESCE(SUM(amount), 0) FROM credits WHERE active = 1").fetchone()[0]
        offset_tons = conn.execute("SELECT COALESCE(SUM(amount), 0) FROM credits WHERE active = 0").fetchone()[0]
        total_events = conn.execute("SELECT COUNT(*) FROM event_log").fetchone()[0]

        # Per-company stats
        companies = []
        rows = conn.execute(
            """
            SELECT p.principal AS principal,
                   COALESCE(b.emissions, 0) AS emissions,
                   COUNT(c.token_id) AS credits,
                   COALESCE(SUM(CASE WHEN c.active = 1 THEN c.amount ELSE 0 END), 0) AS active_tons,
                   COALESCE(SUM(CASE WHEN c.active = 0 THEN c.amount ELSE 0 END), 0) AS offset_tons
            FROM (SELECT principal FROM balances UNION SELECT owner FROM credits) p
            LEFT JOIN balances b ON b.principal = p.principal
            LEFT JOIN credits c ON c.owner = p.principal
            GROUP BY p.principal
            ORDER BY p.principal ASC
            """
        ).fetchall()
        for row in rows:
            companies.append({
                "principal": row["principal"],
                "emissions": row["emissions"],
                "credits": row["credits"],
                "active_tons": row["active_tons"],
                "offset_tons": row["offset_tons"],
            })

    return {
        "total_companies": total_companies,
        "outstanding_emissions": outstanding_emissions,
        "total_credits": total_credits,
        "active_credits": active_credits,
        "offset_credits": total_credits - active_credits,
        "active_tons": active_tons,
        "offset_tons": offset_tons,
        "total_events": total_events,
        "companies": companies,
    }
