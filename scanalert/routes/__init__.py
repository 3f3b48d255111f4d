# Routes package init
"""
ScanAlert Backend — API Routes Package
========================================

Route Inventory:
    - scan.py:    POST /scan            (record scan, alert parent)
                  GET  /scan-history    (all scans, newest first)
    - health.py:  GET  /                (plain-text liveness)
                  GET  /health          (database + SMS gateway status)

Routes are thin: they read the request, call ScanService, and return.
"""
