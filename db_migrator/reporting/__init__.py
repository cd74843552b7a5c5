"""Run configuration echo, connectivity lines and the final migration report."""

from .report_sinks import CollectingReportSink, JsonReportSink, TextReportSink, sink_for

__all__ = ['TextReportSink', 'JsonReportSink', 'CollectingReportSink', 'sink_for']
