"""
Constructor Selector
Resolves which constructor entry point to call from contract metadata
"""

from typing import Any, Dict, List, Optional, Union

from loguru import logger
from web3 import Web3

from .exceptions import SelectionError
from .types import ConstructorParam, ConstructorSpec


# ink! display types -> ABI types used for argument encoding
INK_TYPE_ALIASES = {
    'AccountId': 'bytes32',
    'Hash': 'bytes32',
    'Balance': 'uint128',
    'Timestamp': 'uint64',
    'BlockNumber': 'uint32',
    'bool': 'bool',
    'String': 'string',
    'Vec<u8>': 'bytes',
    'u8': 'uint8',
    'u16': 'uint16',
    'u32': 'uint32',
    'u64': 'uint64',
    'u128': 'uint128',
    'i8': 'int8',
    'i16': 'int16',
    'i32': 'int32',
    'i64': 'int64',
    'i128': 'int128',
}

DEFAULT_CONSTRUCTOR_NAME = 'new'

SelectionKey = Optional[Union[int, str]]


def _abi_type(item: Dict[str, Any]) -> str:
    """ABI type string for a Solidity input, expanding tuples"""
    typ = item['type']
    if typ.startswith('tuple'):
        inner = ','.join(_abi_type(c) for c in item['components'])
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def _ink_type(type_info: Any) -> str:
    if isinstance(type_info, str):
        display = type_info
    elif not isinstance(type_info, dict):
        raise SelectionError(f"Constructor argument has no type: {type_info!r}")
    else:
        names = type_info.get('displayName') or []
        if not names or not isinstance(names, list):
            raise SelectionError(f"Constructor argument has no displayName: {type_info}")
        display = names[-1]

    if not isinstance(display, str):
        raise SelectionError(f"Constructor argument type name is not a string: {display!r}")

    if display in INK_TYPE_ALIASES:
        return INK_TYPE_ALIASES[display]
    if display in INK_TYPE_ALIASES.values():
        return display
    raise SelectionError(f"Unsupported constructor argument type: {display}")


def _label(entry: Dict[str, Any]) -> str:
    label = entry.get('label', entry.get('name'))
    if isinstance(label, list):
        # ink! metadata v3 stores names as path segments
        label = '::'.join(label)
    if not isinstance(label, str) or not label:
        raise SelectionError(f"Descriptor is missing its name: {entry}")
    return label


def _arg_list(args: Any) -> List[Dict[str, Any]]:
    if not isinstance(args, list) or not all(isinstance(a, dict) for a in args):
        raise SelectionError(f"Constructor arguments must be a list of descriptors: {args!r}")
    return args


def _parse_ink_constructor(entry: Dict[str, Any]) -> ConstructorSpec:
    if 'selector' not in entry or 'args' not in entry:
        raise SelectionError(f"Constructor descriptor missing selector or args: {entry}")

    try:
        selector = Web3.to_bytes(hexstr=entry['selector'])
    except (TypeError, ValueError) as e:
        raise SelectionError(f"Invalid constructor selector {entry['selector']!r}") from e

    params = tuple(
        ConstructorParam(name=_label(arg), type=_ink_type(arg.get('type')))
        for arg in _arg_list(entry['args'])
    )
    return ConstructorSpec(
        name=_label(entry),
        params=params,
        selector=selector,
        payable=entry.get('payable'),
        is_default=bool(entry.get('default', False)),
    )


def _parse_abi_constructors(abi: List[Dict[str, Any]]) -> List[ConstructorSpec]:
    constructors = []
    for item in abi:
        if not isinstance(item, dict) or 'type' not in item:
            raise SelectionError(f"Malformed ABI entry: {item}")
        if item['type'] != 'constructor':
            continue
        try:
            params = tuple(
                ConstructorParam(name=inp.get('name', ''), type=_abi_type(inp))
                for inp in _arg_list(item.get('inputs', []))
            )
        except (KeyError, AttributeError) as e:
            raise SelectionError(f"Malformed constructor input: {e!r}") from e

        mutability = item.get('stateMutability')
        payable = item.get('payable')
        if mutability is not None:
            payable = mutability == 'payable'
        constructors.append(
            ConstructorSpec(name='constructor', params=params, payable=payable)
        )

    if not constructors:
        # Solidity contracts without a constructor take no arguments
        constructors.append(ConstructorSpec(name='constructor', params=(), payable=False))
    return constructors


def list_constructors(metadata: Any) -> List[ConstructorSpec]:
    """
    Parse every constructor described by contract metadata

    Args:
        metadata: ABI list, {"abi": [...]}, or ink!-style {"spec": {"constructors": [...]}}

    Returns:
        List of ConstructorSpec in metadata order

    Raises:
        SelectionError: If the metadata is malformed
    """
    if isinstance(metadata, dict) and 'abi' in metadata:
        metadata = metadata['abi']

    if isinstance(metadata, list):
        return _parse_abi_constructors(metadata)

    if not isinstance(metadata, dict):
        raise SelectionError(f"Unsupported metadata type: {type(metadata).__name__}")

    spec_section = metadata.get('spec', metadata)
    entries = spec_section.get('constructors') if isinstance(spec_section, dict) else None
    if not isinstance(entries, list):
        raise SelectionError("Metadata has no constructor descriptors")

    constructors = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise SelectionError(f"Malformed constructor descriptor: {entry}")
        constructors.append(_parse_ink_constructor(entry))
    return constructors


def _only(matches: List[ConstructorSpec], description: str) -> ConstructorSpec:
    if len(matches) != 1:
        raise SelectionError(
            f"{description} matches {len(matches)} constructors, expected exactly one"
        )
    return matches[0]


def select_constructor(metadata: Any, key: SelectionKey = None) -> ConstructorSpec:
    """
    Resolve the constructor to call

    Args:
        metadata: Contract metadata (see list_constructors)
        key: Index, name, or 0x-prefixed selector. None picks the default
             constructor, the only constructor, or the one named 'new'.

    Returns:
        The matching ConstructorSpec

    Raises:
        SelectionError: If the key does not resolve to exactly one constructor
    """
    constructors = list_constructors(metadata)
    if not constructors:
        raise SelectionError("Metadata describes no constructors")

    if key is None:
        defaults = [c for c in constructors if c.is_default]
        if defaults:
            spec = _only(defaults, "Default flag")
        elif len(constructors) == 1:
            spec = constructors[0]
        else:
            spec = _only(
                [c for c in constructors if c.name == DEFAULT_CONSTRUCTOR_NAME],
                f"Name '{DEFAULT_CONSTRUCTOR_NAME}'"
            )
    elif isinstance(key, bool):
        raise SelectionError(f"Invalid constructor key: {key!r}")
    elif isinstance(key, int):
        if not 0 <= key < len(constructors):
            raise SelectionError(
                f"Constructor index {key} out of range (have {len(constructors)})"
            )
        spec = constructors[key]
    elif isinstance(key, str):
        if key.startswith('0x'):
            matches = [c for c in constructors if c.selector and Web3.to_hex(c.selector) == key.lower()]
        else:
            matches = [c for c in constructors if c.name == key]
        spec = _only(matches, f"Key '{key}'")
    else:
        raise SelectionError(f"Invalid constructor key type: {type(key).__name__}")

    logger.debug(f"Selected constructor {spec.name} ({len(spec.params)} params)")
    return spec
