"""Streamlit front-end for independent programming validation."""
from __future__ import annotations

import json
from dataclasses import replace
from io import BytesIO
from pathlib import Path

import pandas as pd
import streamlit as st

from ipv_checker import (
    ConfigurationError,
    FileResultSetRepository,
    ResultSetValidationContext,
    ValidateResultSetsUseCase,
    ValidationConfig,
)
from ipv_checker.domain.results import ComparisonRun
from ipv_checker.infrastructure.parsing.tabular import read_table, result_set_to_dataframe
from ipv_checker.infrastructure.storage.field_spec_store import parse_field_spec
from ipv_checker.presentation.diff_report import (
    render_csv,
    render_excel,
    render_html,
    run_to_rows,
    summary_rows,
)

UPLOAD_TYPES = ["csv", "txt", "xls", "xlsx", "xlsm", "sas7bdat", "xpt"]

st.set_page_config(page_title="Independent Programming Validation", layout="wide")
st.title("Production vs Validation Output Comparison")


def column_names(upload) -> list[str]:
    if upload is None:
        return []
    try:
        df = read_table(BytesIO(upload.getvalue()), suffix=Path(upload.name).suffix)
    except (ConfigurationError, ValueError) as exc:
        st.error(f"Cannot read {upload.name}: {exc}")
        return []
    return list(df.columns)


def run_validation(base_upload, compare_upload, config: ValidationConfig) -> tuple:
    context = ResultSetValidationContext(
        base_repository=FileResultSetRepository(
            base_upload.getvalue(),
            config.key_fields,
            name=Path(base_upload.name).stem,
            suffix=Path(base_upload.name).suffix,
        ),
        compare_repository=FileResultSetRepository(
            compare_upload.getvalue(),
            config.key_fields,
            name=Path(compare_upload.name).stem,
            suffix=Path(compare_upload.name).suffix,
        ),
        config=config,
    )
    return ValidateResultSetsUseCase(context).execute()


if "view" not in st.session_state:
    st.session_state["view"] = "compare"
if "result" not in st.session_state:
    st.session_state["result"] = None


if st.session_state["view"] == "compare":
    col1, col2 = st.columns(2)
    with col1:
        base_file = st.file_uploader("Upload production (base) output", type=UPLOAD_TYPES)
    with col2:
        compare_file = st.file_uploader("Upload validation (compare) output", type=UPLOAD_TYPES)

    spec_file = st.file_uploader("Optional field-specification (JSON)", type=["json"])
    config = ValidationConfig()
    if spec_file is not None:
        try:
            config = parse_field_spec(json.loads(spec_file.getvalue().decode("utf-8")))
        except (ConfigurationError, json.JSONDecodeError) as exc:
            st.error(f"Invalid field specification: {exc}")

    shared_columns = sorted(set(column_names(base_file)) & set(column_names(compare_file)))
    key_fields = st.multiselect(
        "Key fields",
        options=shared_columns,
        default=[k for k in config.key_fields if k in shared_columns],
    )
    warnings_only = st.checkbox("Report Major findings as warnings", value=config.warnings_only)

    run_btn = st.button("Run Validation", disabled=not (base_file and compare_file and key_fields))
    if run_btn and base_file and compare_file and key_fields:
        config = config.with_key_fields(key_fields)
        config = replace(config, warnings_only=warnings_only)
        try:
            with st.spinner("Comparing..."):
                run, base_set, compare_set = run_validation(base_file, compare_file, config)
        except ConfigurationError as exc:
            st.error(str(exc))
        else:
            st.session_state["result"] = {
                "run": run,
                "base": result_set_to_dataframe(base_set),
                "compare": result_set_to_dataframe(compare_set),
                "diff_csv": render_csv(run),
                "diff_html": render_html(run),
                "diff_xlsx": render_excel(run),
            }
            st.session_state["view"] = "results"
            st.rerun()
else:
    back_clicked = st.button("← Back", key="back_to_compare")
    if back_clicked:
        st.session_state["view"] = "compare"
        st.session_state["result"] = None
        st.rerun()

    result = st.session_state.get("result")
    if not result:
        st.info("No results available. Upload files and run validation first.")
    else:
        run: ComparisonRun = result["run"]

        st.subheader(f"Overall status: {run.overall_status.value}")
        st.dataframe(pd.DataFrame(summary_rows(run)), hide_index=True)

        tabs = st.tabs(["Discrepancies", "All findings", "Base", "Compare"])
        with tabs[0]:
            st.dataframe(pd.DataFrame(run_to_rows(run)))
            st.download_button(
                "Download discrepancies CSV",
                data=result["diff_csv"],
                file_name="ipv_discrepancies.csv",
                mime="text/csv",
            )
            st.download_button(
                "Download report HTML",
                data=result["diff_html"].encode("utf-8"),
                file_name="ipv_report.html",
                mime="text/html",
            )
            st.download_button(
                "Download workbook",
                data=result["diff_xlsx"],
                file_name="ipv_report.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )
        with tabs[1]:
            st.dataframe(pd.DataFrame(run_to_rows(run, include_matches=True)))
        with tabs[2]:
            st.dataframe(result["base"])
        with tabs[3]:
            st.dataframe(result["compare"])
