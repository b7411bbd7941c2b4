import copy
import logging
from dataclasses import dataclass, field

from .api import api_call
from .exceptions import PartialBulkError, RemoteError

logger = logging.getLogger(__name__)

SMART_TIMEOUT_BASE = 10
SMART_TIMEOUT_INCREMENT = 10


def smart_timeout(affected, base=SMART_TIMEOUT_BASE, increment=SMART_TIMEOUT_INCREMENT):
    """
    Timeout for an operation whose cost grows with the number of objects it
    touches (e.g. a recursive delete).
    """
    return base + increment * max(affected, 0)


def substitute_target(shared_params, target_field, target):
    """
    Parameters for a single invocation of a bulk-able method.

    With an empty `target_field` the target becomes the leading positional
    argument. Otherwise it is written under `target_field` into the first
    mapping in `shared_params`; a tuple of field names takes a tuple target
    with one value per field.
    """
    params = copy.deepcopy(list(shared_params))
    if not target_field:
        return [target, *params]

    if isinstance(target_field, str):
        fields, values = (target_field,), (target,)
    else:
        fields, values = tuple(target_field), tuple(target)
        if len(fields) != len(values):
            raise ValueError(f'{target!r}: expected {len(fields)} values for {fields!r}')

    for param in params:
        if isinstance(param, dict):
            param.update(zip(fields, values))
            break
    else:
        params.insert(0, dict(zip(fields, values)))

    return params


def _target_label(target):
    if isinstance(target, (tuple, list)):
        return '@'.join(str(v) for v in target)
    return str(target)


@dataclass(slots=True)
class BulkCallResult:
    output: object = None
    errors: dict = field(default_factory=dict)

    @property
    def failed(self):
        return {target: error for target, error in self.errors.items() if error is not None}


@dataclass(slots=True, frozen=True)
class BulkCallRequest:
    method: str
    timeout: int
    shared_params: tuple = ()
    target_field: str | tuple = ''
    targets: tuple = ()
    best_effort: bool = False

    def execute(self, session):
        return bulk_call(
            session, self.method, self.timeout, self.shared_params, self.target_field, self.targets,
            self.best_effort,
        )


def bulk_call(session, method, timeout, shared_params, target_field, targets, best_effort=False):
    """
    Call `method` once per target. A single target is a direct call, several
    targets are sent as one `core.bulk` job.

    Unless `best_effort` is set a failing target raises (`RemoteError` for a
    direct call, `PartialBulkError` listing every failed target for a bulk
    job). Effects of targets that did succeed are not undone.
    """
    targets = list(targets)
    if not targets:
        raise ValueError(f'{method}: no targets')

    result = BulkCallResult()
    if len(targets) == 1:
        label = _target_label(targets[0])
        params = substitute_target(shared_params, target_field, targets[0])
        try:
            result.output = api_call(session, method, *params, timeout=timeout)
        except RemoteError as e:
            if not best_effort:
                raise
            logger.warning('Ignoring failure of %s on %s: %s', method, label, e.errmsg)
            result.errors[label] = e.errmsg
        else:
            result.errors[label] = None
        return result

    all_params = [substitute_target(shared_params, target_field, target) for target in targets]
    try:
        statuses = api_call(
            session, 'core.bulk', method, all_params, timeout=timeout * len(targets), job=True,
        )
    except RemoteError as e:
        if not best_effort:
            raise
        logger.warning('Ignoring failure of core.bulk %s: %s', method, e.errmsg)
        result.errors.update({_target_label(target): e.errmsg for target in targets})
        return result

    result.output = statuses
    statuses = list(statuses or [])
    for i, target in enumerate(targets):
        status = statuses[i] if i < len(statuses) else {'error': 'No result returned'}
        result.errors[_target_label(target)] = status.get('error')

    failed = result.failed
    if failed:
        if not best_effort:
            raise PartialBulkError(method, failed.items())
        for label, error in failed.items():
            logger.warning('Ignoring failure of %s on %s: %s', method, label, error)

    return result


@dataclass(slots=True, frozen=True)
class TwoPhaseOperation:
    """
    An optional best-effort cleanup followed by the authoritative call. The
    cleanup is never rolled back if the commit fails.
    """
    commit: BulkCallRequest
    cleanup: BulkCallRequest | None = None

    def run(self, session):
        cleanup_result = None
        if self.cleanup is not None:
            if not self.cleanup.best_effort:
                raise ValueError('The cleanup phase must be best-effort')
            cleanup_result = self.cleanup.execute(session)

        return cleanup_result, self.commit.execute(session)
