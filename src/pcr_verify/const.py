ERRORS = {
  "E_LAYOUT_MISSING": "Container file missing",
  "E_HEADER": "Container header invalid or truncated",
  "E_VERSION": "Container version not supported",
  "E_RECORD": "Frame record structurally invalid",
  "E_SIZE_MISMATCH": "Leading and trailing size markers differ",
  "E_INDEX_DRIFT": "Frame index out of sequence",
  "E_TORN_RECORD": "Incomplete frame record at end of container",
  "E_FRAME_COUNT": "Header frame count does not match records on disk",
  "E_TIME_RANGE": "Header start/end time does not match recorded frames",
  "E_BACKWARD_WALK": "Backward traversal disagrees with forward scan",
}
