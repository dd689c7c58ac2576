"""Traffic Split Reconciler (TSR).

Turns a declared two-version traffic split into service-mesh routing objects:
 - generates a VirtualService / DestinationRule pair for the service
 - writes the pair to a GitOps snapshot directory (the system of record)
 - applies the pair to a live cluster when one is reachable (best effort)

Rule records, the HTTP API and the audit log live alongside the core so the
whole flow can be run on a laptop without a cluster.
"""
