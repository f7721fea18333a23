"""
Himawari fetch test suite

Structure:
- unit/: offline tests for workers, cache, assembler, overlay and pipeline
  (network replaced by tests.conftest.FakeSource)
- integration/: talks to the live NICT service; opt in with HIMAWARI_LIVE=1
"""
