# mosdns

Building blocks for a plugin-driven DNS forwarder. The package holds the core
pieces a forwarder is put together from. Each piece can also be used on its own.
DNS messages are `dns.message.Message` objects from dnspython.

## What is inside

- **Containers**
  - `mosdns.linked_list`: `LinkedList` and `Elem`, a doubly linked list whose
    elements can be moved in O(1).
  - `mosdns.lru`: `LRU`, a size-bounded map with an optional eviction
    callback.
  - `mosdns.concurrent_lru`: `ConcurrentLRU` puts an `LRU` behind a lock.
    `ShardedLRU` spreads keys over several of them.
- **DNS message helpers**
  - `mosdns.edns0`
    - `upgrade_edns0` and `remove_edns0` add and remove the OPT record.
    - `get_edns0_option` and `remove_edns0_option` work on single EDNS0
      options.
    - `get_msg_ecs`, `remove_msg_ecs`, `add_ecs` and `new_edns0_subnet` handle
      the EDNS Client Subnet option.
    - `pad_to_minimum` pads a message to a minimum wire length.
  - `mosdns.msgutils`
    - TTL helpers: `get_minimal_ttl`, `set_ttl`, `apply_maximum_ttl`,
      `apply_minimal_ttl` and `subtract_ttl`.
    - `qtype_to_string` and `qclass_to_string` give the mnemonic of a type or
      class.
    - `gen_empty_reply` builds an empty reply and `fake_soa` a placeholder SOA
      record.
    - `get_msg_key`, `get_msg_key_with_bytes_salt` and
      `get_msg_key_with_int64_salt` derive cache keys from a message.
  - `mosdns.netio` reads and writes messages on binary streams:
    - `read_msg_from_tcp` and `write_msg_to_tcp` use TCP frames with a
      two-byte length prefix.
    - `read_raw_msg_from_tcp` and `write_raw_msg_to_tcp` do the same for raw
      payloads.
    - `read_msg_from_udp` and `write_msg_to_udp` handle single datagrams.
- **Caches**
  - `mosdns.mem_cache`
    - `CacheBackend` is the common interface. `get` returns a `CachedValue` or
      `None`.
    - `MemCache` is a sharded in-memory LRU. A background thread drops expired
      entries, and `clean_expired` drops them on demand.
  - `mosdns.redis_cache`
    - `RedisCache` stores entries through a redis client that you supply. It
      only needs the methods `get`, `set` (with `px`), `ping`, `dbsize` and
      `pipeline`.
    - After a client error the cache disables itself until a background ping
      succeeds.
    - `pack_redis_data` and `unpack_redis_value` define the stored layout: two
      big-endian signed 64-bit Unix timestamps in whole seconds, then the
      payload.
- **Hosts.** `mosdns.hosts.Hosts` answers A and AAAA queries from a table.
  `parse_ips` parses a hosts line into a pattern and an `IPs` object.
- **Execution chains.** These are asyncio based.
  - `mosdns.chain` defines the model:
    - `QueryContext`, `Executable`, `Matcher` and `ChainNode`.
    - `wrap_executable`, `last_node` and `exec_chain_node`.
    - `wait_first_response` and `logical_and_matcher_group`.
    - `DummyExecutable` and `DummyMatcher`, for building chains with scripted
      behaviour.
  - `mosdns.condition`
    - `ConditionMatcher` evaluates a boolean expression over named matchers.
      The expression uses `&&`, `||`, `!`, parentheses, `true`, `false`, and
      `[tag]` for tags with other characters.
    - `ConditionNode` runs one of two branches depending on a matcher.
  - `mosdns.load_balance.LBNode` runs one branch per query, round robin.
  - `mosdns.parallel.ParallelNode` runs every branch on a copy of the query
    and keeps the first response.
- **Upstreams.** `mosdns.bundled_upstream.exchange_parallel` sends a query to
  several `Upstream` objects at once. It returns the first response that comes
  from a trusted upstream or has rcode NOERROR. Otherwise it raises
  `AllUpstreamsFailed`.
- **Runtime pieces**
  - `mosdns.mlog`: `new_logger` builds a console or JSON logger from a
    `LogConfig`. `default_logger` and `set_level` handle the default logger.
  - `mosdns.data_provider`: `DataProvider` reads a file and, with
    `auto_reload`, pushes new content to `DataListener` objects when the file
    changes. `DataManager` keeps providers by tag.
  - `mosdns.config`:
    - `load_config` reads a YAML or JSON configuration file into `Config`.
      With no path it looks for `config.json`, `config.yaml` or `config.yml`
      in the working directory.
    - `merge_include` merges included files, up to eight levels deep.
    - `Config.from_mapping` decodes a mapping and rejects unknown keys.
  - `mosdns.registry`:
    - `register_plugin_type`, `get_plugin_type`, `delete_plugin_type` and
      `get_all_plugin_types` manage the plugin types.
    - `new_plugin` builds a plugin from a `PluginConfig`.
    - `register_preset_plugin` and `load_preset_plugin_funcs` handle preset
      plugins.
    - `BasicPlugin` is the base a plugin is built on.

## Examples

Parse a hosts line and answer a query from it:

```python
import dns.message
from mosdns.hosts import Hosts, parse_ips

pattern, ips = parse_ips("dns.google 8.8.8.8 8.8.4.4 2001:4860:4860::8888")
# pattern == "dns.google", ips.ipv4 holds two addresses, ips.ipv6 one


class ExactMatcher:
    def __init__(self, table):
        self.table = table

    def match(self, fqdn):
        return self.table.get(fqdn)


hosts = Hosts(ExactMatcher({"dns.google.": ips}))
reply = hosts.lookup_msg(dns.message.make_query("dns.google.", "A"))
```

Pack and unpack a cached value. Times are Unix seconds:

```python
import time
from mosdns.redis_cache import pack_redis_data, unpack_redis_value

now = time.time()
blob = pack_redis_data(now, now + 60, b"payload")
stored, expires, value = unpack_redis_value(blob)  # whole seconds, b"payload"
```

Run a conditional chain:

```python
import asyncio
import dns.message
from mosdns.chain import DummyExecutable, DummyMatcher, QueryContext, exec_chain_node, wrap_executable
from mosdns.condition import ConditionMatcher, ConditionNode

answer = dns.message.Message()
matchers = {"is_local": DummyMatcher(matched=True)}
node = ConditionNode(
    matcher=ConditionMatcher("is_local && !false", matchers),
    executable_node=wrap_executable(DummyExecutable(response=answer)),
)

qctx = QueryContext(dns.message.make_query("example.com.", "A"))
asyncio.run(exec_chain_node(qctx, node))
assert qctx.response is answer
```

## What this package does not do

- It has no command-line program. It does not listen for DNS queries over
  UDP, TCP, TLS or HTTPS. `Config` describes servers and listeners, but
  nothing in the package starts them.
- It does not turn the `exec` sections of a configuration into chains. You
  build chains yourself from `ConditionNode`, `LBNode`, `ParallelNode` and
  wrapped executables.
- It has no primary/secondary fallback node and no per-client rate limiter.
- It registers no plugin types and ships no domain matcher. `Hosts` takes any
  object with a `match(fqdn)` method.

## Tests

The test suite uses pytest and pytest-asyncio. Both are listed in the `test`
extra:

```
pip install -e .[test]
pytest
```