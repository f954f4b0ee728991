"""Fingering Engine — notation normalisation and violin fingering assignment.

Sub-package containing:
    models           – value types shared by every stage
    diagnostics      – timestamped diagnostic log
    key_resolver     – key signature → key name and accidental map
    score_loader     – recognition output discovery and XML decoding
    notation_parser  – loose score tree → ordered notes with coordinates
    solver           – per-note string / position / finger assignment
    overlay          – fingering → on-page placement descriptor
    annotate         – orchestrates the pipeline and exports results
"""
