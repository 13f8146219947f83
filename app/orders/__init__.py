"""Order lifecycle: state machine, persistence primitives and portal operations"""
