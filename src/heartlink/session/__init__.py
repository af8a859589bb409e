from heartlink.session.machine import MonitorSnapshot as MonitorSnapshot
from heartlink.session.machine import \
    SessionStateMachine as SessionStateMachine
from heartlink.session.readings import ReadingsLog as ReadingsLog
from heartlink.session.state import ErrorKind as ErrorKind
from heartlink.session.state import ErrorRecord as ErrorRecord
from heartlink.session.state import Session as Session
from heartlink.session.state import SessionPolicy as SessionPolicy
from heartlink.session.state import SessionState as SessionState
from heartlink.session.transitions import transition as transition
