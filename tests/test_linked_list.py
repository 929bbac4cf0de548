import pytest

from mosdns.linked_list import Elem, LinkedList


def check_links(lst):
    for elem in lst:
        if elem.next is not None:
            assert elem.next.prev is elem
        if elem.prev is not None:
            assert elem.prev.next is elem


def values(lst):
    return [e.value for e in lst]


def test_push_back():
    lst = LinkedList()
    lst.push_back(Elem(1))
    lst.push_back(Elem(2))
    assert values(lst) == [1, 2]
    assert len(lst) == 2
    check_links(lst)


def test_push_front():
    lst = LinkedList()
    lst.push_front(Elem(1))
    lst.push_front(Elem(2))
    assert values(lst) == [2, 1]
    assert lst.front.value == 2
    assert lst.back.value == 1
    check_links(lst)


@pytest.mark.parametrize(
    "items, pop, want, want_list",
    [
        ([0, 1, 2], 0, 0, [1, 2]),
        ([0, 1, 2], 1, 1, [0, 2]),
        ([0, 1, 2], 2, 2, [0, 1]),
    ],
)
def test_pop_elem(items, pop, want, want_list):
    lst = LinkedList()
    elems = [Elem(i) for i in items]
    for e in elems:
        lst.push_back(e)
    check_links(lst)

    got = lst.pop_elem(elems[pop])
    check_links(lst)

    assert got.value == want
    assert values(lst) == want_list
    assert len(lst) == len(want_list)
    assert got.prev is None and got.next is None


def test_pop_last_element_empties_list():
    lst = LinkedList()
    e = lst.push_back(Elem("x"))
    lst.pop_elem(e)
    assert lst.front is None
    assert lst.back is None
    assert len(lst) == 0


def test_push_element_in_use_raises():
    lst = LinkedList()
    e = lst.push_back(Elem(1))
    with pytest.raises(ValueError):
        lst.push_front(e)
    with pytest.raises(ValueError):
        LinkedList().push_back(e)


def test_pop_foreign_element_raises():
    a = LinkedList()
    b = LinkedList()
    e = a.push_back(Elem(1))
    with pytest.raises(ValueError):
        b.pop_elem(e)


def test_popped_element_can_be_reused():
    lst = LinkedList()
    e1 = lst.push_back(Elem(1))
    lst.push_back(Elem(2))
    lst.push_back(lst.pop_elem(e1))
    assert values(lst) == [2, 1]
    check_links(lst)


def test_iteration_allows_popping_current():
    lst = LinkedList()
    for i in range(5):
        lst.push_back(Elem(i))
    for e in lst:
        if e.value % 2 == 0:
            lst.pop_elem(e)
    assert values(lst) == [1, 3]
    check_links(lst)