"""Setup (provisioning) services.

This package contains orchestration helpers that *provision* or *tear down*
external infrastructure on behalf of callers (e.g., sandbox CodeArtifact
repositories for test runs).
"""
