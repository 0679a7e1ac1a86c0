"""Engine services: condition evaluation, flow selection, approver resolution,
step sequencing, the approval state machine and the delegation registry."""
