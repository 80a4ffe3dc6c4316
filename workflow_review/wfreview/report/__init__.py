"""Review report rendering."""

from wfreview.report.renderer import render, render_summary

__all__ = ["render", "render_summary"]
